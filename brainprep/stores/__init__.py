"""
Brainprep Stores

Interfaces to the data sources the pipeline reads from and writes to.
"""

from .knowledge import KnowledgeStore, HttpKnowledgeStore, InMemoryKnowledgeStore
from .structured import StructuredStore, InMemoryStructuredStore, matches_filter
from .dynamic import (
    DynamicCollection,
    DynamicStore,
    DynamicStoreProvider,
    InMemoryDynamicStore,
    InMemoryDynamicStoreProvider,
)

__all__ = [
    'KnowledgeStore',
    'HttpKnowledgeStore',
    'InMemoryKnowledgeStore',
    'StructuredStore',
    'InMemoryStructuredStore',
    'matches_filter',
    'DynamicCollection',
    'DynamicStore',
    'DynamicStoreProvider',
    'InMemoryDynamicStore',
    'InMemoryDynamicStoreProvider',
]
