"""
Brainprep Context Gatherer

Collects the context an entity is enriched with from four independent sources:
the project record, the structured CMS collections, the knowledge store and the
project's dynamic store. Every source failure is absorbed where it happens and
replaced with that source's empty default; siblings keep running.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional

from brainprep.cache.cache_manager import CacheManager, project_key
from brainprep.core.config import PrepConfig
from brainprep.core.constants import (
    ALL_CONTEXT_SOURCES,
    CONTEXT_QUERY_MAX_CHARS,
    DYNAMIC_SAMPLE_COLLECTIONS,
    PROJECTS_COLLECTION,
    STRUCTURED_COLLECTIONS,
    ContextSource,
)
from brainprep.core.exceptions import ContextSourceError
from brainprep.core.logging_config import get_logger
from brainprep.core.models import (
    DynamicStoreContext,
    GatheredContext,
    KnowledgeContext,
    ProjectContext,
    RawEntity,
    RelatedEntities,
)
from brainprep.stores.dynamic import DynamicStoreProvider
from brainprep.stores.knowledge import KnowledgeStore
from brainprep.stores.structured import StructuredStore

logger = get_logger("pipelines.context")


def build_context_query(raw: RawEntity, entity_type: str = "") -> str:
    """Knowledge search query from the entity's text fields, capped in length."""
    parts = [raw.name, raw.description, raw.content, raw.get('type') or entity_type]
    return " ".join(str(p) for p in parts if p)[:CONTEXT_QUERY_MAX_CHARS]


def _names(docs: Iterable[Dict[str, Any]]) -> List[str]:
    return [str(d['name']) for d in docs if d.get('name')]


class ContextGatherer:
    """
    Multi-source context collection.

    Stores that are not configured (None) contribute their empty default.
    """

    def __init__(
        self,
        structured_store: Optional[StructuredStore] = None,
        knowledge_store: Optional[KnowledgeStore] = None,
        dynamic_provider: Optional[DynamicStoreProvider] = None,
        cache: Optional[CacheManager] = None,
        config: Optional[PrepConfig] = None,
    ):
        self.structured_store = structured_store
        self.knowledge_store = knowledge_store
        self.dynamic_provider = dynamic_provider
        self.cache = cache
        self.config = config or PrepConfig()

    async def gather_all(
        self,
        raw: RawEntity,
        project_id: str,
        sources: Optional[List[ContextSource]] = None,
        entity_type: str = "",
    ) -> GatheredContext:
        """
        Gather context for one entity.

        Args:
            raw: The entity being prepared
            project_id: Owning project
            sources: Sources to consult (default: all). The project record is
                always resolved since the dynamic store is addressed by its slug.
            entity_type: Entity type, used in the knowledge search query

        Returns:
            GatheredContext; `degraded_sources` names sources that failed
        """
        sources = list(sources) if sources is not None else list(ALL_CONTEXT_SOURCES)
        degraded: List[str] = []

        project = await self._project_context(project_id, degraded)

        structured, knowledge, dynamic = await asyncio.gather(
            self._guard(ContextSource.STRUCTURED, sources, degraded, dict,
                        self._structured_context, project_id),
            self._guard(ContextSource.KNOWLEDGE, sources, degraded, KnowledgeContext,
                        self._knowledge_context, raw, project_id, entity_type),
            self._guard(ContextSource.DYNAMIC, sources, degraded, DynamicStoreContext,
                        self._dynamic_context, project.slug or project_id),
        )

        context = GatheredContext(
            project=project,
            structured_store=structured,
            knowledge=knowledge,
            dynamic_store=dynamic,
            degraded_sources=degraded,
        )
        context.related = self.find_related(raw, context)

        logger.debug(
            f"Context for {project_id}: {knowledge.total_count} similar, "
            f"{len(dynamic.collections)} dynamic collections, "
            f"{context.related.total()} related, degraded={degraded}"
        )
        return context

    async def _guard(self, source: ContextSource, enabled: List[ContextSource],
                     degraded: List[str], empty, fetch, *args):
        """Run one source fetch; failures become the source's empty default."""
        if source not in enabled:
            return empty()
        try:
            return await fetch(*args)
        except Exception as e:
            error = ContextSourceError(source.value, str(e))
            logger.warning(str(error))
            degraded.append(source.value)
            return empty()

    # =========================================================================
    # SOURCES
    # =========================================================================

    async def _project_context(self, project_id: str, degraded: List[str]) -> ProjectContext:
        key = project_key(project_id)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached:
                logger.debug("Project context cache hit")
                return ProjectContext.from_dict(cached)

        if self.structured_store is None:
            return ProjectContext.minimal(project_id)

        try:
            record = await self.structured_store.find_by_id(PROJECTS_COLLECTION, project_id)
        except Exception as e:
            logger.warning(str(ContextSourceError(ContextSource.PROJECT.value, str(e))))
            degraded.append(ContextSource.PROJECT.value)
            return ProjectContext.minimal(project_id)

        if record is None:
            logger.warning(f"Project {project_id} not found, using minimal context")
            return ProjectContext.minimal(project_id)

        project = ProjectContext.from_record(record, project_id)
        if self.cache is not None:
            await self.cache.set(key, project.to_dict(), self.config.cache.project_context_ttl)
        return project

    async def _structured_context(self, project_id: str) -> Dict[str, List[Dict[str, Any]]]:
        if self.structured_store is None:
            return {}

        limit = self.config.context.structured_find_limit

        async def fetch(collection: str) -> List[Dict[str, Any]]:
            try:
                return await self.structured_store.find(collection, {'project': project_id}, limit)
            except Exception as e:
                logger.error(f"Failed to get {collection}: {e}")
                return []

        results = await asyncio.gather(*(fetch(c) for c in STRUCTURED_COLLECTIONS))
        return dict(zip(STRUCTURED_COLLECTIONS, results))

    async def _knowledge_context(self, raw: RawEntity, project_id: str,
                                 entity_type: str) -> KnowledgeContext:
        if self.knowledge_store is None:
            return KnowledgeContext()

        query = build_context_query(raw, entity_type)
        if not query:
            return KnowledgeContext()

        results = await self.knowledge_store.search_similar(
            query, limit=self.config.context.knowledge_search_limit, project_id=project_id
        )
        return KnowledgeContext(total_count=len(results), similar_content=list(results))

    async def _dynamic_context(self, project_slug: str) -> DynamicStoreContext:
        if self.dynamic_provider is None:
            return DynamicStoreContext()

        store = await self.dynamic_provider.open(project_slug)
        names = await store.list_collections()

        async def count(name: str) -> int:
            try:
                return await store.collection(name).count_documents()
            except Exception as e:
                logger.error(f"Failed to get stats for {name}: {e}")
                return 0

        async def sample(name: str) -> List[Dict[str, Any]]:
            if name not in names:
                return []
            try:
                return await store.collection(name).find(limit=self.config.context.dynamic_sample_limit)
            except Exception as e:
                logger.error(f"Failed to get {name}: {e}")
                return []

        counts, samples = await asyncio.gather(
            asyncio.gather(*(count(n) for n in names)),
            asyncio.gather(*(sample(n) for n in DYNAMIC_SAMPLE_COLLECTIONS)),
        )
        return DynamicStoreContext(
            collections=list(names),
            stats=dict(zip(names, counts)),
            samples=dict(zip(DYNAMIC_SAMPLE_COLLECTIONS, samples)),
        )

    # =========================================================================
    # RELATED ENTITIES
    # =========================================================================

    def find_related(self, raw: RawEntity, context: GatheredContext) -> RelatedEntities:
        """Match the entity's text and explicit references against fetched entities."""
        text = " ".join(p for p in (raw.description, raw.content, raw.text) if p)
        dynamic = context.dynamic_store
        own_name = raw.name

        def mentioned(docs: List[Dict[str, Any]]) -> List[str]:
            if not text:
                return []
            return [n for n in _names(docs) if n != own_name and n in text]

        related = RelatedEntities(
            characters=mentioned(dynamic.sample('characters')),
            locations=mentioned(dynamic.sample('locations')),
            concepts=mentioned(dynamic.sample('concepts')),
            episodes=mentioned(context.structured_store.get('episodes', [])),
        )

        scene_number = raw.get('sceneNumber')
        if scene_number is not None:
            related.scenes = [
                s.get('name') or f"Scene {s.get('sceneNumber')}"
                for s in dynamic.sample('scenes')
                if s.get('sceneNumber') == scene_number and s.get('name') != own_name
            ]
        explicit_scenes = raw.get('scenes')
        if isinstance(explicit_scenes, list):
            related.scenes = [str(s.get('name') or s.get('id')) if isinstance(s, dict) else str(s)
                              for s in explicit_scenes]

        location = raw.get('location')
        if location:
            name = location.get('name') or location.get('id') if isinstance(location, dict) else location
            if name and str(name) not in related.locations:
                related.locations.insert(0, str(name))

        return related


def describe_context(context: GatheredContext) -> str:
    """Human-readable summary of gathered context, used in prompts and documents."""
    project = context.project
    parts = [f"Project: {project.name}" + (f" ({project.type})" if project.type else "")]
    if project.genre:
        parts.append(f"Genre: {', '.join(project.genre)}")
    if project.themes:
        parts.append(f"Themes: {', '.join(project.themes)}")

    related = context.related
    for label, names in (
        ("Characters", related.characters),
        ("Scenes", related.scenes),
        ("Locations", related.locations),
        ("Concepts", related.concepts),
        ("Episodes", related.episodes),
    ):
        if names:
            parts.append(f"Related {label.lower()}: {', '.join(names[:10])}")

    if context.knowledge.total_count:
        parts.append(f"Brain matches: {context.knowledge.total_count} similar items")
    if context.dynamic_store.stats:
        counts = ", ".join(f"{k}={v}" for k, v in sorted(context.dynamic_store.stats.items()))
        parts.append(f"Project data: {counts}")
    return ". ".join(parts)
