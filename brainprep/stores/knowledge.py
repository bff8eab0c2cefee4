"""
Knowledge Store

The semantic knowledge store ("brain") the pipeline writes enriched documents
into and searches for similar content. HttpKnowledgeStore talks to the brain
service over HTTP; InMemoryKnowledgeStore keeps nodes in a dict for local runs
and tests.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from brainprep.core.config import BrainConfig
from brainprep.core.exceptions import StorageError
from brainprep.core.logging_config import get_logger
from brainprep.core.retry import RetryConfig, STORE_RETRY_CONFIG, retry_async_call

logger = get_logger("stores.knowledge")


class KnowledgeStore(ABC):
    """Abstract knowledge store."""

    @abstractmethod
    async def add_node(self, node: Dict[str, Any]) -> Dict[str, Any]:
        """Create or replace a node; returns the stored node."""
        pass

    @abstractmethod
    async def search_similar(self, query: str, limit: int = 10,
                             project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_node(self, node_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def delete_node(self, node_id: str) -> bool:
        """Returns False when the node did not exist."""
        pass

    async def close(self) -> None:
        pass


# =============================================================================
# HTTP
# =============================================================================

class _RetryableStatus(Exception):
    """5xx from the brain service; retried, then surfaced as StorageError."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class HttpKnowledgeStore(KnowledgeStore):
    """Brain service client over httpx."""

    def __init__(
        self,
        config: BrainConfig,
        retry_config: RetryConfig = STORE_RETRY_CONFIG,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.retry_config = RetryConfig(
            max_retries=retry_config.max_retries,
            base_delay=retry_config.base_delay,
            max_delay=retry_config.max_delay,
            exponential_base=retry_config.exponential_base,
            jitter=retry_config.jitter,
            retryable_exceptions=(httpx.TransportError, _RetryableStatus),
        )
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        self._client = httpx.AsyncClient(
            base_url=config.api_url.rstrip('/'),
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, path, **kwargs)
        if response.status_code >= 500:
            raise _RetryableStatus(response)
        return response

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await retry_async_call(self._send, method, path, config=self.retry_config, **kwargs)
        except _RetryableStatus as e:
            raise StorageError(
                f"Brain service {method} {path} failed: HTTP {e.response.status_code}",
                {"status": e.response.status_code},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Brain service {method} {path} failed: {e}")

    @staticmethod
    def _check(response: httpx.Response, action: str) -> None:
        if response.is_error:
            raise StorageError(
                f"Brain service rejected {action}: HTTP {response.status_code}",
                {"status": response.status_code, "body": response.text[:500]},
            )

    async def add_node(self, node):
        response = await self._request("POST", "/api/v1/nodes", json=node)
        self._check(response, f"add_node {node.get('id')}")
        data = response.json()
        return data.get("node", data) if isinstance(data, dict) else node

    async def search_similar(self, query, limit=10, project_id=None):
        payload = {"query": query, "limit": limit}
        if project_id:
            payload["projectId"] = project_id
        response = await self._request("POST", "/api/v1/search/semantic", json=payload)
        self._check(response, "search")
        data = response.json()
        if isinstance(data, dict):
            return list(data.get("results", []))
        return list(data)

    async def get_node(self, node_id):
        response = await self._request("GET", f"/api/v1/nodes/{node_id}")
        if response.status_code == 404:
            return None
        self._check(response, f"get_node {node_id}")
        data = response.json()
        return data.get("node", data) if isinstance(data, dict) else None

    async def delete_node(self, node_id):
        response = await self._request("DELETE", f"/api/v1/nodes/{node_id}")
        if response.status_code == 404:
            return False
        self._check(response, f"delete_node {node_id}")
        return True

    async def close(self):
        await self._client.aclose()


# =============================================================================
# IN MEMORY
# =============================================================================

_WORD = re.compile(r"[a-z0-9]+")


def _tokens(text: str) -> set:
    return set(_WORD.findall(text.lower()))


class InMemoryKnowledgeStore(KnowledgeStore):
    """Dict-backed store; search ranks nodes by word overlap with the query."""

    def __init__(self):
        self.nodes: Dict[str, Dict[str, Any]] = {}

    async def add_node(self, node):
        if not node.get("id"):
            raise StorageError("Node has no id")
        self.nodes[node["id"]] = dict(node)
        return dict(node)

    async def search_similar(self, query, limit=10, project_id=None):
        query_tokens = _tokens(query)
        if not query_tokens:
            return []

        scored = []
        for node in self.nodes.values():
            if project_id and node.get("project_id") != project_id:
                continue
            overlap = query_tokens & _tokens(node.get("text", ""))
            if overlap:
                score = len(overlap) / len(query_tokens)
                scored.append({**node, "similarity": round(score, 4)})

        scored.sort(key=lambda n: n["similarity"], reverse=True)
        return scored[:limit]

    async def get_node(self, node_id):
        node = self.nodes.get(node_id)
        return dict(node) if node is not None else None

    async def delete_node(self, node_id):
        return self.nodes.pop(node_id, None) is not None
