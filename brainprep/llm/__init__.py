"""
Brainprep LLM Module

LLM client interface and implementations.
"""

from .client import (
    LLMResult,
    TokenUsage,
    BaseLLMClient,
    CallableLLMClient,
    OpenRouterClient,
    parse_json_from_text,
    build_prompt,
)

__all__ = [
    'LLMResult',
    'TokenUsage',
    'BaseLLMClient',
    'CallableLLMClient',
    'OpenRouterClient',
    'parse_json_from_text',
    'build_prompt',
]
