"""
Tests for the data enricher.
"""

from brainprep.core.models import (
    GatheredContext,
    ProjectContext,
    RelatedEntities,
    RelationshipSuggestion,
    parse_raw_entity,
)
from brainprep.pipelines.data_enricher import DataEnricher, build_text, score


class TestScore:
    """Tests for the quality rubric."""

    def test_empty_entity_scores_zero(self):
        assert score("", "", {}) == 0.0

    def test_full_marks(self):
        metadata = {"a": 1, "b": 2, "c": 3, "summary": "s", "generationMode": "llm"}
        rels = [RelationshipSuggestion("LOVES", "char_2", confidence=0.9)]

        assert score("Aladdin", "A thief", metadata, rels) == 1.0

    def test_bookkeeping_fields_not_counted(self):
        metadata = {"summary": "s", "generatedAt": "now", "generationMode": "fallback", "confidence": 0.4}

        assert score("Aladdin", "", metadata) == 0.2

    def test_fallback_summary_earns_no_credit(self):
        metadata = {"a": 1, "b": 2, "c": 3, "summary": "s", "generationMode": "fallback"}

        assert score("Aladdin", "A thief", metadata) == 0.6


class TestBuildText:
    """Tests for document text assembly."""

    def test_summary_appended_when_new(self):
        raw = parse_raw_entity({"name": "Aladdin", "description": "A thief"}, "character")

        assert build_text(raw, {"summary": "Dreams of more"}) == "Aladdin\n\nA thief\n\nDreams of more"

    def test_summary_skipped_when_contained(self):
        raw = parse_raw_entity({"name": "Aladdin", "description": "A thief who dreams"}, "character")

        assert build_text(raw, {"summary": "A thief"}) == "Aladdin\n\nA thief who dreams"

    def test_content_kept_alongside_description(self):
        raw = parse_raw_entity({"name": "Cave of Wonders", "description": "A tiger-headed cave",
                                "content": "Only the diamond in the rough may enter"}, "location")

        text = build_text(raw, {})

        assert text == "Cave of Wonders\n\nA tiger-headed cave\n\nOnly the diamond in the rough may enter"

    def test_related_names_appended(self):
        raw = parse_raw_entity({"name": "Aladdin", "description": "A thief"}, "character")
        related = [{"name": "Jasmine", "type": "character"}, {"name": "Agrabah", "type": "location"}]

        assert build_text(raw, {}, related) == "Aladdin\n\nA thief\n\nJasmine, Agrabah"


class TestDataEnricher:
    """Tests for DataEnricher.enrich."""

    def test_enrich(self):
        raw = parse_raw_entity({"id": "c1", "name": "Aladdin", "description": "Loves Jasmine"}, "character")
        context = GatheredContext(
            project=ProjectContext(id="p1", name="Film", slug="film"),
            related=RelatedEntities(characters=["Jasmine"]),
        )
        metadata = {"summary": "Street thief", "generationMode": "llm"}

        enriched = DataEnricher().enrich(raw, context, metadata)

        assert enriched.original["id"] == "c1"
        assert enriched.related_entities == [{"name": "Jasmine", "type": "character"}]
        assert enriched.text.endswith("Jasmine")
        assert enriched.context_summary.startswith("Project: Film")
        assert enriched.quality_score == 0.6
        assert enriched.metadata is not metadata

    def test_rescore_with_relationships(self):
        raw = parse_raw_entity({"name": "Aladdin"}, "character")
        enricher = DataEnricher()
        enriched = enricher.enrich(raw, GatheredContext(project=ProjectContext.minimal("p1")), {})

        rels = [RelationshipSuggestion("LOVES", "char_2", confidence=0.9)]

        assert enricher.score(enriched, rels) == round(enriched.quality_score + 0.2, 2)
