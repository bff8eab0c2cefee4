"""
Cache Backends

Storage behind the CacheManager. Values are strings (JSON encoded by the
manager). MemoryCacheBackend keeps entries in-process; RedisCacheBackend uses
redis.asyncio.
"""

import fnmatch
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis

from brainprep.core.logging_config import get_logger

logger = get_logger("cache.backends")


@dataclass
class CacheEntry:
    """A cached value with its own TTL."""
    value: Any
    timestamp: float
    ttl: float
    hit_count: int = 0

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now or time.time()) - self.timestamp >= self.ttl


@dataclass
class CacheStats:
    """Statistics for cache performance."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "errors": self.errors,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class TTLStore:
    """
    Thread-safe in-process store with per-entry TTL and LRU eviction.

    Used as the manager's front tier and by MemoryCacheBackend.
    """

    def __init__(self, max_size: int = 500):
        self.max_size = max_size
        self._entries: Dict[str, CacheEntry] = {}
        self._access_order: List[str] = []
        self._lock = threading.RLock()
        self.stats = CacheStats()

    def _drop(self, key: str) -> None:
        self._entries.pop(key, None)
        if key in self._access_order:
            self._access_order.remove(key)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return None

            if entry.is_expired():
                self._drop(key)
                self.stats.misses += 1
                self.stats.evictions += 1
                return None

            self._access_order.remove(key)
            self._access_order.append(key)
            entry.hit_count += 1
            self.stats.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            if key in self._entries:
                self._drop(key)
            while len(self._entries) >= self.max_size and self._access_order:
                oldest_key = self._access_order.pop(0)
                if self._entries.pop(oldest_key, None) is not None:
                    self.stats.evictions += 1

            self._entries[key] = CacheEntry(value=value, timestamp=time.time(), ttl=ttl)
            self._access_order.append(key)

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = key in self._entries
            self._drop(key)
            return existed

    def keys(self, pattern: str = "*") -> List[str]:
        with self._lock:
            now = time.time()
            return [
                k for k, e in self._entries.items()
                if not e.is_expired(now) and fnmatch.fnmatchcase(k, pattern)
            ]

    def delete_pattern(self, pattern: str) -> int:
        with self._lock:
            matched = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
            for key in matched:
                self._drop(key)
            return len(matched)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._access_order.clear()

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# BACKENDS
# =============================================================================

class CacheBackend(ABC):
    """Abstract async cache backend."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        pass

    @abstractmethod
    async def keys(self, pattern: str) -> List[str]:
        pass

    @abstractmethod
    async def flush(self) -> None:
        pass

    async def close(self) -> None:
        pass


class MemoryCacheBackend(CacheBackend):
    """In-process backend for single-process deployments and tests."""

    def __init__(self, max_size: int = 10000):
        self._store = TTLStore(max_size=max_size)

    async def get(self, key):
        return self._store.get(key)

    async def setex(self, key, ttl_seconds, value):
        self._store.set(key, value, ttl_seconds)

    async def delete(self, *keys):
        return sum(1 for key in keys if self._store.delete(key))

    async def keys(self, pattern):
        return self._store.keys(pattern)

    async def flush(self):
        self._store.clear()


class RedisCacheBackend(CacheBackend):
    """Redis backend on redis.asyncio."""

    def __init__(self, url: str = "redis://localhost:6379", client: Optional[aioredis.Redis] = None):
        self.url = url
        self._client = client or aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        logger.info(f"Redis cache backend configured at {url}")

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def get(self, key):
        return await self._client.get(key)

    async def setex(self, key, ttl_seconds, value):
        await self._client.setex(key, int(ttl_seconds), value)

    async def delete(self, *keys):
        if not keys:
            return 0
        return await self._client.delete(*keys)

    async def keys(self, pattern):
        return [key async for key in self._client.scan_iter(match=pattern)]

    async def flush(self):
        await self._client.flushdb()

    async def close(self):
        await self._client.aclose()
