"""
Brainprep LLM Clients

The pipeline talks to the language model through BaseLLMClient.execute(). Two
implementations ship:

- CallableLLMClient wraps any async `llm_caller(prompt=..., system_prompt=...)`
  returning text, the same calling convention the agents use elsewhere.
- OpenRouterClient calls an OpenAI-compatible chat completions endpoint
  (OpenRouter by default) with httpx.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from brainprep.core.config import LLMConfig
from brainprep.core.exceptions import LLMProviderError, LLMResponseError
from brainprep.core.logging_config import get_logger

logger = get_logger("llm.client")

LLMCaller = Callable[..., Awaitable[str]]


@dataclass
class LLMResult:
    """Response from an LLM call."""
    content: str
    structured: Optional[Any] = None
    tokens_used: int = 0
    model: str = ""


@dataclass
class TokenUsage:
    """Tokens spent across the LLM calls of one request."""
    total: int = 0
    calls: int = 0

    def add(self, result: LLMResult) -> None:
        self.total += result.tokens_used
        self.calls += 1


def parse_json_from_text(text: str) -> Optional[Any]:
    """Parse a JSON object or array from text, handling markdown code blocks."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Prose around the payload
    match = re.search(r"(\{.*\}|\[.*\])", text, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            return None
    return None


def estimate_tokens(*texts: str) -> int:
    """Rough token count (4 chars per token) for providers that report no usage."""
    return sum(len(t) for t in texts if t) // 4


def build_prompt(prompt: str, context: Optional[Dict[str, Any]] = None,
                 schema: Optional[Dict[str, Any]] = None) -> str:
    """Append context and the expected JSON schema to a prompt."""
    parts = [prompt]
    if context:
        parts.append("CONTEXT:\n" + json.dumps(context, indent=2, default=str))
    if schema:
        parts.append(
            "Respond with JSON matching this schema:\n" + json.dumps(schema, indent=2)
        )
    return "\n\n".join(parts)


class BaseLLMClient(ABC):
    """Abstract LLM client used by the pipeline."""

    @abstractmethod
    async def execute(
        self,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        schema: Optional[Dict[str, Any]] = None,
        system_prompt: str = ""
    ) -> LLMResult:
        """
        Run one completion.

        When `schema` is given the response must be JSON; the parsed value is
        returned in LLMResult.structured and LLMResponseError is raised when the
        response cannot be parsed.
        """
        pass

    def _structured(self, content: str, schema: Optional[Dict[str, Any]]) -> Optional[Any]:
        if not schema:
            return None
        parsed = parse_json_from_text(content)
        if parsed is None:
            raise LLMResponseError("LLM response is not valid JSON", {"preview": content[:200]})
        return parsed


class CallableLLMClient(BaseLLMClient):
    """Adapts an async `llm_caller(prompt=..., system_prompt=...) -> str`."""

    def __init__(self, llm_caller: LLMCaller, model: str = ""):
        self.llm_caller = llm_caller
        self.model = model

    async def execute(self, prompt, context=None, schema=None, system_prompt=""):
        full_prompt = build_prompt(prompt, context, schema)
        content = await self.llm_caller(prompt=full_prompt, system_prompt=system_prompt)
        if not isinstance(content, str):
            raise LLMResponseError(f"LLM caller returned {type(content).__name__}, expected str")

        return LLMResult(
            content=content,
            structured=self._structured(content, schema),
            tokens_used=estimate_tokens(system_prompt, full_prompt, content),
            model=self.model,
        )


class OpenRouterClient(BaseLLMClient):
    """
    OpenAI-compatible chat completions client.

    Tries the default model first and the backup model (if configured) when the
    default fails.
    """

    def __init__(self, config: LLMConfig, timeout: float = 60.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if not config.api_key:
            logger.warning("OpenRouter API key not configured")
        self.config = config
        self.timeout = timeout
        self._transport = transport

    async def _complete(self, model: str, messages: list, json_mode: bool) -> Dict[str, Any]:
        body = {
            "model": model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.config.base_url.rstrip('/')}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                },
                json=body,
            )
            response.raise_for_status()
            return response.json()

    async def execute(self, prompt, context=None, schema=None, system_prompt=""):
        full_prompt = build_prompt(prompt, context, schema)
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": full_prompt})

        models = [self.config.default_model]
        if self.config.backup_model:
            models.append(self.config.backup_model)

        last_error: Optional[Exception] = None
        for model in models:
            try:
                data = await self._complete(model, messages, json_mode=bool(schema))
                content = data["choices"][0]["message"]["content"] or ""
            except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
                logger.warning(f"Model {model} failed: {e}")
                last_error = e
                continue

            usage = data.get("usage") or {}
            return LLMResult(
                content=content,
                structured=self._structured(content, schema),
                tokens_used=usage.get("total_tokens") or estimate_tokens(system_prompt, full_prompt, content),
                model=model,
            )

        raise LLMProviderError("openrouter", str(last_error))
