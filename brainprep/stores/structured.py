"""
Structured Store

Read access to the CMS collections (projects, episodes, conversations,
workflows). The CMS owns these records; the pipeline only reads them.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


def matches_filter(doc: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    """
    Equality filter. A relation field stored as an object matches on its `id`,
    so {'project': 'p1'} matches {'project': {'id': 'p1', ...}}.
    """
    if not filter:
        return True
    for key, expected in filter.items():
        actual = doc.get(key)
        if isinstance(actual, dict) and not isinstance(expected, dict):
            actual = actual.get('id')
        if actual != expected:
            return False
    return True


class StructuredStore(ABC):
    """Abstract CMS collection reader."""

    @abstractmethod
    async def find(self, collection: str, filter: Optional[Dict[str, Any]] = None,
                   limit: int = 10) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        pass


class InMemoryStructuredStore(StructuredStore):
    """Collections held as lists of dicts."""

    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.collections: Dict[str, List[Dict[str, Any]]] = {
            name: list(docs) for name, docs in (collections or {}).items()
        }

    def insert(self, collection: str, doc: Dict[str, Any]) -> None:
        self.collections.setdefault(collection, []).append(doc)

    async def find(self, collection, filter=None, limit=10):
        docs = [d for d in self.collections.get(collection, []) if matches_filter(d, filter)]
        return docs[:limit]

    async def find_by_id(self, collection, doc_id):
        for doc in self.collections.get(collection, []):
            if str(doc.get('id')) == str(doc_id):
                return doc
        return None
