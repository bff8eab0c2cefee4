"""
Brainprep Cache Manager

Two-tier cache for prepared documents and project context: an in-process TTL
tier in front of a pluggable backend (memory or Redis). Values are stored as
JSON. A backend failure never fails the caller; it is logged and treated as a
miss.

Keys:
    prep:{projectId}:{entityType}:{entityId}   prepared documents
    project:{projectId}                         project context
"""

import json
from typing import Any, Optional

from brainprep.core.config import CacheConfig
from brainprep.core.constants import CACHE_KEY_PREFIX, PROJECT_CACHE_PREFIX
from brainprep.core.logging_config import get_logger
from .backends import CacheBackend, CacheStats, MemoryCacheBackend, TTLStore

logger = get_logger("cache.manager")


def document_key(project_id: str, entity_type: str, entity_id: str) -> str:
    return f"{CACHE_KEY_PREFIX}:{project_id}:{entity_type}:{entity_id}"


def project_key(project_id: str) -> str:
    return f"{PROJECT_CACHE_PREFIX}:{project_id}"


def project_documents_pattern(project_id: str) -> str:
    return f"{CACHE_KEY_PREFIX}:{project_id}:*"


class CacheManager:
    """
    Cache used by the agent and the context gatherer.

    Features:
    - Memory tier checked before the backend
    - Backend hits repopulate the memory tier with the TTL of the key's class
    - JSON values, TTL per entry
    - Hit/miss statistics
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        config: Optional[CacheConfig] = None,
        use_memory_tier: bool = True,
    ):
        self.config = config or CacheConfig()
        self.backend = backend or MemoryCacheBackend()
        self._memory = TTLStore(max_size=self.config.memory_max_size) if use_memory_tier else None
        self._stats = CacheStats()

    def ttl_for(self, key: str) -> int:
        """TTL class of a key, from its prefix."""
        if key.startswith(f"{CACHE_KEY_PREFIX}:"):
            return self.config.document_ttl
        if key.startswith(f"{PROJECT_CACHE_PREFIX}:"):
            return self.config.project_context_ttl
        return self.config.entity_ttl

    async def get(self, key: str) -> Optional[Any]:
        """Cached value for a key, or None."""
        if self._memory is not None:
            value = self._memory.get(key)
            if value is not None:
                self._stats.hits += 1
                logger.debug(f"Memory cache hit: {key}")
                return value

        try:
            raw = await self.backend.get(key)
        except Exception as e:
            self._stats.errors += 1
            self._stats.misses += 1
            logger.error(f"Cache backend get failed for {key}: {e}")
            return None

        if raw is None:
            self._stats.misses += 1
            return None

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            self._stats.errors += 1
            self._stats.misses += 1
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None

        if self._memory is not None:
            self._memory.set(key, value, self.ttl_for(key))
        self._stats.hits += 1
        logger.debug(f"Backend cache hit: {key}")
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store a JSON-serialisable value in both tiers."""
        payload = json.dumps(value, default=str)
        if self._memory is not None:
            # Round-trip so both tiers return the same shapes
            self._memory.set(key, json.loads(payload), ttl_seconds)

        try:
            await self.backend.setex(key, ttl_seconds, payload)
            logger.debug(f"Cached {key} (TTL: {ttl_seconds}s)")
        except Exception as e:
            self._stats.errors += 1
            logger.error(f"Cache backend set failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        if self._memory is not None:
            self._memory.delete(key)
        try:
            await self.backend.delete(key)
        except Exception as e:
            self._stats.errors += 1
            logger.error(f"Cache backend delete failed for {key}: {e}")

    async def clear_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns the backend count."""
        if self._memory is not None:
            self._memory.delete_pattern(pattern)
        try:
            keys = await self.backend.keys(pattern)
            removed = await self.backend.delete(*keys) if keys else 0
        except Exception as e:
            self._stats.errors += 1
            logger.error(f"Cache backend clear failed for {pattern}: {e}")
            return 0

        if removed:
            logger.info(f"Cleared {removed} keys matching {pattern}")
        return removed

    async def clear(self) -> None:
        if self._memory is not None:
            self._memory.clear()
        try:
            await self.backend.flush()
        except Exception as e:
            self._stats.errors += 1
            logger.error(f"Cache backend flush failed: {e}")

    async def close(self) -> None:
        await self.backend.close()

    def get_stats(self) -> CacheStats:
        return self._stats
