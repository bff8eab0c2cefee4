"""
Tests for the relationship discoverer.

Tests for brainprep/pipelines/relationship_discoverer.py
"""

import pytest

from brainprep.config import (
    ConfigRegistry,
    EntityConfig,
    EntityKind,
    RelationshipTypeSpec,
    default_prompts,
)
from brainprep.core.models import (
    DynamicStoreContext,
    GatheredContext,
    KnowledgeContext,
    ProjectContext,
    RelationshipSuggestion,
    parse_raw_entity,
)
from brainprep.llm.client import CallableLLMClient
from brainprep.pipelines.relationship_discoverer import (
    EXPLICIT_CONFIDENCE,
    RelationshipDiscoverer,
    explicit_relationships,
)


TARGETS = [
    ("LOVES", "char_2"),
    ("OPPOSES", "char_3"),
    ("BEFRIENDS", "char_2"),
    ("FREQUENTS", "loc_1"),
    ("APPEARS_IN", "scene_1"),
]


@pytest.fixture
def context() -> GatheredContext:
    return GatheredContext(
        project=ProjectContext(id="proj_x", name="Aladdin Reimagined", slug="aladdin-reimagined"),
        dynamic_store=DynamicStoreContext(
            collections=["characters", "locations"],
            samples={
                "characters": [
                    {"id": "char_1", "name": "Aladdin"},
                    {"id": "char_2", "name": "Jasmine"},
                    {"id": "char_3", "name": "Jafar"},
                ],
                "locations": [{"id": "loc_1", "name": "Agrabah"}],
                "scenes": [{"id": "scene_1", "name": "Marketplace Chase"}],
            },
        ),
        knowledge=KnowledgeContext(total_count=1, similar_content=[
            {"id": "node_9", "type": "concept", "text": "Freedom versus duty"},
        ]),
    )


def suggestion(rel_type, target, confidence, target_type="character"):
    return {"type": rel_type, "targetId": target, "targetType": target_type,
            "confidence": confidence, "reasoning": "test"}


class TestExplicitRelationships:
    """Tests for references stated in the raw entity."""

    def test_character_scenes(self):
        raw = parse_raw_entity({"id": "c1", "scenes": ["s1", {"id": "s2"}]}, "character")

        rels = explicit_relationships(raw)

        assert [(r.type, r.target_id, r.target_type) for r in rels] == [
            ("APPEARS_IN", "s1", "scene"), ("APPEARS_IN", "s2", "scene"),
        ]
        assert all(r.confidence == EXPLICIT_CONFIDENCE for r in rels)

    def test_scene_characters_and_location(self):
        raw = parse_raw_entity({"id": "s1", "characters": ["c1"], "location": {"id": "l1"}}, "scene")

        keys = [r.key for r in explicit_relationships(raw)]

        assert keys == [("CONTAINS", "c1"), ("LOCATED_IN", "l1")]

    def test_episode_scenes(self):
        raw = parse_raw_entity({"id": "e1", "sceneIds": ["s1", "s2"]}, "episode")

        assert [r.key for r in explicit_relationships(raw)] == [("CONTAINS", "s1"), ("CONTAINS", "s2")]

    def test_other_types_have_none(self):
        assert explicit_relationships(parse_raw_entity({"id": "x"}, "location")) == []
        assert explicit_relationships(None) == []


class TestCandidates:
    """Tests for the candidate list shown to the LLM."""

    def test_excludes_own_id_and_includes_similar(self, registry, context):
        discoverer = RelationshipDiscoverer(None, registry)
        raw = parse_raw_entity({"id": "char_1", "name": "Aladdin"}, "character")

        candidates = discoverer.candidates(context, registry.get('character'), raw)

        ids = [c['id'] for c in candidates]
        assert "char_1" not in ids
        assert {"id": "loc_1", "type": "location", "name": "Agrabah"} in candidates
        assert {"id": "node_9", "type": "concept", "name": ""} in candidates


class TestFilterSuggestions:
    """Tests for filtering and capping."""

    def test_fifty_duplicates_collapse(self, registry):
        config = registry.get('character')
        discoverer = RelationshipDiscoverer(None, registry)
        suggestions = [
            RelationshipSuggestion(TARGETS[i % 5][0], TARGETS[i % 5][1], confidence=i / 50)
            for i in range(50)
        ]

        result = discoverer.filter_suggestions(suggestions, config)

        settings = config.enrichment_strategy.relationship_discovery
        assert len(result) <= settings.max_relationships
        assert len({r.key for r in result}) == len(result)
        for rel in result:
            spec = config.relationship_spec(rel.type)
            threshold = spec.confidence_threshold or settings.confidence_threshold
            assert rel.confidence >= threshold
        confidences = [r.confidence for r in result]
        assert confidences == sorted(confidences, reverse=True)
        loves = next(r for r in result if r.key == ("LOVES", "char_2"))
        assert loves.confidence == 45 / 50

    def test_undeclared_type_dropped(self, registry):
        result = RelationshipDiscoverer(None, registry).filter_suggestions(
            [RelationshipSuggestion("STEALS_FROM", "char_3", confidence=0.99)],
            registry.get('character'),
        )

        assert result == []

    def test_below_type_threshold_dropped(self, registry):
        result = RelationshipDiscoverer(None, registry).filter_suggestions(
            [RelationshipSuggestion("LOVES", "char_2", confidence=0.65)],
            registry.get('character'),
        )

        assert result == []

    def test_per_type_max_count(self):
        registry = ConfigRegistry(include_builtins=False)
        registry.register(EntityConfig(
            type="prop", kind=EntityKind.GENERIC, prompts=default_prompts("prop"),
            relationship_types=[RelationshipTypeSpec("USED_BY", ["character"], max_count=2)],
        ))
        suggestions = [RelationshipSuggestion("USED_BY", f"char_{i}", confidence=0.9) for i in range(5)]

        result = RelationshipDiscoverer(None, registry).filter_suggestions(
            suggestions, registry.get("prop")
        )

        assert len(result) == 2

    def test_confidence_outside_unit_range_dropped(self, registry):
        suggestions = [
            RelationshipSuggestion("LOVES", "char_2", confidence=7.5),
            RelationshipSuggestion("OPPOSES", "char_3", confidence=-0.2),
            RelationshipSuggestion("OPPOSES", "char_4", confidence=float("nan")),
            RelationshipSuggestion("BEFRIENDS", "char_5", confidence=1.0),
        ]

        result = RelationshipDiscoverer(None, registry).filter_suggestions(
            suggestions, registry.get('character')
        )

        assert [r.key for r in result] == [("BEFRIENDS", "char_5")]

    def test_explicit_bypasses_threshold(self, registry):
        explicit = [RelationshipSuggestion("APPEARS_IN", "scene_1", "scene", confidence=1.0)]
        llm = [RelationshipSuggestion("APPEARS_IN", "scene_1", "scene", confidence=0.8)]

        result = RelationshipDiscoverer(None, registry).filter_suggestions(
            llm, registry.get('character'), explicit
        )

        assert len(result) == 1
        assert result[0].confidence == 1.0


class TestDiscover:
    """Tests for RelationshipDiscoverer.discover."""

    @pytest.mark.asyncio
    async def test_llm_suggestions_filtered(self, registry, scripted_llm, context, aladdin):
        scripted_llm.relationships = [
            suggestion("LOVES", "char_2", 0.9),
            suggestion("LOVES", "char_2", 0.75),
            suggestion("OPPOSES", "char_3", 0.5),
            suggestion("TELEPORTS", "char_3", 0.99),
        ]
        discoverer = RelationshipDiscoverer(CallableLLMClient(scripted_llm), registry)
        raw = parse_raw_entity({**aladdin, "scenes": ["scene_1"]}, "character")

        result = await discoverer.discover("Aladdin loves Jasmine", context, "proj_x", "character", raw)

        assert [(r.type, r.target_id, r.confidence) for r in result] == [
            ("APPEARS_IN", "scene_1", 1.0),
            ("LOVES", "char_2", 0.9),
        ]
        prompt = scripted_llm.calls[0]
        assert "char_2 | character | Jasmine" in prompt
        assert "LOVES -> character" in prompt

    @pytest.mark.asyncio
    async def test_out_of_range_llm_confidence_ignored(self, registry, scripted_llm, context):
        scripted_llm.relationships = [
            suggestion("LOVES", "char_2", 7.5),
            suggestion("OPPOSES", "char_3", 0.95),
        ]
        discoverer = RelationshipDiscoverer(CallableLLMClient(scripted_llm), registry)

        result = await discoverer.discover("text", context, "proj_x", "character")

        assert [(r.type, r.target_id, r.confidence) for r in result] == [("OPPOSES", "char_3", 0.95)]

    @pytest.mark.asyncio
    async def test_wrapped_response_accepted(self, registry, scripted_llm, context):
        scripted_llm.raw_response = '{"relationships": [{"type": "OPPOSES", "targetId": "char_3", "confidence": 0.95}]}'
        discoverer = RelationshipDiscoverer(CallableLLMClient(scripted_llm), registry)

        result = await discoverer.discover("text", context, "proj_x", "character")

        assert [r.key for r in result] == [("OPPOSES", "char_3")]

    @pytest.mark.asyncio
    async def test_llm_failure_keeps_explicit(self, registry, scripted_llm, context):
        scripted_llm.fail = TimeoutError("slow model")
        discoverer = RelationshipDiscoverer(CallableLLMClient(scripted_llm), registry)
        raw = parse_raw_entity({"id": "char_1", "scenes": ["scene_1"]}, "character")

        result = await discoverer.discover("text", context, "proj_x", "character", raw)

        assert [r.key for r in result] == [("APPEARS_IN", "scene_1")]

    @pytest.mark.asyncio
    async def test_no_candidates_skips_llm(self, registry, scripted_llm):
        discoverer = RelationshipDiscoverer(CallableLLMClient(scripted_llm), registry)
        empty = GatheredContext(project=ProjectContext.minimal("proj_x"))

        result = await discoverer.discover("text", empty, "proj_x", "character")

        assert result == []
        assert scripted_llm.calls == []
