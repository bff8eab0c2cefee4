"""
Dynamic Store

Per-project document database holding the free-form collections a project
grows over time (characters, scenes, locations, concepts, ...). A provider opens
the store for a project slug.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .structured import matches_filter


class DynamicCollection(ABC):

    @abstractmethod
    async def find(self, filter: Optional[Dict[str, Any]] = None,
                   limit: int = 10) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def count_documents(self, filter: Optional[Dict[str, Any]] = None) -> int:
        pass


class DynamicStore(ABC):

    @abstractmethod
    async def list_collections(self) -> List[str]:
        pass

    @abstractmethod
    def collection(self, name: str) -> DynamicCollection:
        pass


class DynamicStoreProvider(ABC):
    """Opens the dynamic store of a project."""

    @abstractmethod
    async def open(self, project_slug: str) -> DynamicStore:
        pass


# =============================================================================
# IN MEMORY
# =============================================================================

class InMemoryDynamicCollection(DynamicCollection):

    def __init__(self, docs: List[Dict[str, Any]]):
        self.docs = docs

    async def find(self, filter=None, limit=10):
        return [d for d in self.docs if matches_filter(d, filter)][:limit]

    async def count_documents(self, filter=None):
        return sum(1 for d in self.docs if matches_filter(d, filter))


class InMemoryDynamicStore(DynamicStore):

    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.collections: Dict[str, List[Dict[str, Any]]] = {
            name: list(docs) for name, docs in (collections or {}).items()
        }

    async def list_collections(self):
        return sorted(self.collections)

    def collection(self, name):
        return InMemoryDynamicCollection(self.collections.setdefault(name, []))


class InMemoryDynamicStoreProvider(DynamicStoreProvider):
    """One InMemoryDynamicStore per project slug, created on first open."""

    def __init__(self, stores: Optional[Dict[str, InMemoryDynamicStore]] = None):
        self.stores: Dict[str, InMemoryDynamicStore] = dict(stores or {})

    async def open(self, project_slug):
        return self.stores.setdefault(project_slug, InMemoryDynamicStore())
