"""
Brainprep Cache Module
"""

from .backends import (
    CacheBackend,
    CacheEntry,
    CacheStats,
    MemoryCacheBackend,
    RedisCacheBackend,
    TTLStore,
)
from .cache_manager import (
    CacheManager,
    document_key,
    project_key,
    project_documents_pattern,
)

__all__ = [
    'CacheBackend',
    'CacheEntry',
    'CacheStats',
    'MemoryCacheBackend',
    'RedisCacheBackend',
    'TTLStore',
    'CacheManager',
    'document_key',
    'project_key',
    'project_documents_pattern',
]
