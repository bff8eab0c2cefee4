"""
Tests for the context gatherer.

Tests for brainprep/pipelines/context_gatherer.py
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from brainprep.cache.cache_manager import project_key
from brainprep.core.constants import ContextSource
from brainprep.core.models import parse_raw_entity
from brainprep.pipelines.context_gatherer import (
    ContextGatherer,
    build_context_query,
    describe_context,
)

PROJECT_ID = "proj_x"


class TestBuildContextQuery:
    """Tests for the knowledge search query."""

    def test_joins_text_fields(self):
        raw = parse_raw_entity({"name": "Aladdin", "description": "A thief"}, "character")

        assert build_context_query(raw, "character") == "Aladdin A thief character"

    def test_capped_length(self):
        raw = parse_raw_entity({"name": "x" * 1000}, "character")

        assert len(build_context_query(raw)) == 500


class TestGatherAll:
    """Tests for ContextGatherer.gather_all."""

    @pytest.mark.asyncio
    async def test_gathers_every_source(self, gatherer, knowledge_store, aladdin):
        await knowledge_store.add_node({"id": "n1", "project_id": PROJECT_ID,
                                        "text": "Aladdin rides the magic carpet"})

        context = await gatherer.gather_all(parse_raw_entity(aladdin, "character"), PROJECT_ID,
                                            entity_type="character")

        assert context.project.name == "Aladdin Reimagined"
        assert context.structured_store["episodes"][0]["name"] == "Pilot"
        assert context.knowledge.total_count == 1
        assert context.dynamic_store.stats == {"characters": 2, "locations": 1, "scenes": 1}
        assert context.related.characters == ["Jasmine"]
        assert context.related.locations == ["Agrabah"]
        assert context.degraded_sources == []

    @pytest.mark.asyncio
    async def test_knowledge_failure_isolated(self, structured_store, dynamic_provider, cache,
                                              prep_config, aladdin):
        failing = MagicMock()
        failing.search_similar = AsyncMock(side_effect=ConnectionError("brain down"))
        gatherer = ContextGatherer(structured_store, failing, dynamic_provider, cache, prep_config)

        context = await gatherer.gather_all(parse_raw_entity(aladdin, "character"), PROJECT_ID)

        assert context.knowledge.total_count == 0
        assert context.knowledge.similar_content == []
        assert context.degraded_sources == ["knowledge"]
        assert context.project.name == "Aladdin Reimagined"
        assert context.dynamic_store.collections == ["characters", "locations", "scenes"]
        assert "episodes" in context.structured_store

    @pytest.mark.asyncio
    async def test_dynamic_failure_isolated(self, structured_store, knowledge_store, cache,
                                            prep_config, aladdin):
        provider = MagicMock()
        provider.open = AsyncMock(side_effect=RuntimeError("no database"))
        gatherer = ContextGatherer(structured_store, knowledge_store, provider, cache, prep_config)

        context = await gatherer.gather_all(parse_raw_entity(aladdin, "character"), PROJECT_ID)

        assert context.degraded_sources == ["dynamic"]
        assert context.dynamic_store.collections == []
        assert context.related.characters == []

    @pytest.mark.asyncio
    async def test_unknown_project_gets_minimal_context(self, gatherer, aladdin):
        context = await gatherer.gather_all(parse_raw_entity(aladdin, "character"), "proj_missing")

        assert context.project.name == "Unknown Project"
        assert context.project.slug == "proj_missing"

    @pytest.mark.asyncio
    async def test_project_context_cached(self, gatherer, cache, structured_store, aladdin):
        raw = parse_raw_entity(aladdin, "character")
        await gatherer.gather_all(raw, PROJECT_ID)
        structured_store.collections["projects"] = []

        context = await gatherer.gather_all(raw, PROJECT_ID)

        assert context.project.name == "Aladdin Reimagined"
        assert await cache.get(project_key(PROJECT_ID)) is not None

    @pytest.mark.asyncio
    async def test_disabled_sources_skipped(self, gatherer, aladdin):
        context = await gatherer.gather_all(
            parse_raw_entity(aladdin, "character"), PROJECT_ID,
            sources=[ContextSource.PROJECT],
        )

        assert context.structured_store == {}
        assert context.dynamic_store.collections == []
        assert context.project.name == "Aladdin Reimagined"

    @pytest.mark.asyncio
    async def test_no_stores_configured(self, aladdin):
        context = await ContextGatherer().gather_all(parse_raw_entity(aladdin, "character"), PROJECT_ID)

        assert context.project.name == "Unknown Project"
        assert context.knowledge.total_count == 0


class TestFindRelated:
    """Tests for related-entity matching."""

    @pytest.mark.asyncio
    async def test_scene_matches_by_number_and_location(self, gatherer):
        raw = parse_raw_entity({
            "id": "scene_9",
            "name": "Rooftop Escape",
            "sceneNumber": 1,
            "description": "Aladdin flees across the rooftops",
            "location": {"id": "loc_1", "name": "Agrabah"},
        }, "scene")

        context = await gatherer.gather_all(raw, PROJECT_ID)

        assert context.related.scenes == ["Marketplace Chase"]
        assert context.related.locations == ["Agrabah"]

    @pytest.mark.asyncio
    async def test_own_name_excluded(self, gatherer):
        raw = parse_raw_entity({"id": "char_2", "name": "Jasmine",
                                "description": "Jasmine is a princess who dreams of freedom"},
                               "character")

        context = await gatherer.gather_all(raw, PROJECT_ID)

        assert "Jasmine" not in context.related.characters


class TestDescribeContext:
    """Tests for the context summary."""

    @pytest.mark.asyncio
    async def test_summary_mentions_project_and_related(self, gatherer, aladdin):
        context = await gatherer.gather_all(parse_raw_entity(aladdin, "character"), PROJECT_ID)

        summary = describe_context(context)

        assert summary.startswith("Project: Aladdin Reimagined (feature)")
        assert "Genre: adventure, fantasy" in summary
        assert "Related characters: Jasmine" in summary
        assert "Project data: characters=2, locations=1, scenes=1" in summary
