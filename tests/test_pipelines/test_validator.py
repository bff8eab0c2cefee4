"""
Tests for the document validator.

Tests for brainprep/pipelines/validator.py
"""

import pytest

from brainprep.config import (
    ConditionOperator,
    EntityConfig,
    EntityKind,
    QualityThresholds,
    RuleType,
    Severity,
    ValidationCondition,
    ValidationRuleSpec,
    ValidatorRegistry,
    default_prompts,
)
from brainprep.core.models import EnrichedDocument, RelationshipSuggestion
from brainprep.pipelines.validator import DocumentValidator, condition_holds


def make_document(**overrides) -> EnrichedDocument:
    fields = dict(
        id="character_char_1_proj_x",
        type="character",
        project_id="proj_x",
        text="Aladdin\n\nA street-smart young thief from Agrabah.",
        metadata={"name": "Aladdin", "description": "A street-smart young thief from Agrabah."},
        relationships=[RelationshipSuggestion("LOVES", "char_2", "character", 0.9)],
    )
    fields.update(overrides)
    return EnrichedDocument(**fields)


def prop_config(rules, **kwargs) -> EntityConfig:
    return EntityConfig(type="prop", kind=EntityKind.GENERIC, prompts=default_prompts("prop"),
                        validation_rules=rules, **kwargs)


class TestStructure:
    """Tests for structural checks."""

    def test_valid_document(self):
        result = DocumentValidator().validate(make_document())

        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_missing_fields_block(self):
        result = DocumentValidator().validate(make_document(id="", project_id="", text=""))

        assert result.valid is False
        assert "Document id is required" in result.errors
        assert "Project id is required" in result.errors
        assert "Document text is required" in result.errors

    def test_short_text_and_no_relationships_warn(self):
        result = DocumentValidator().validate(make_document(text="Aladdin", relationships=[]))

        assert result.valid is True
        assert "Text is very short (7 characters)" in result.warnings
        assert "Document has no relationships" in result.warnings

    def test_long_text_warns(self):
        result = DocumentValidator().validate(make_document(text="x" * 10001))

        assert result.warnings == ["Text is very long (10001 characters)"]

    def test_relationship_without_target_blocks(self):
        result = DocumentValidator().validate(
            make_document(relationships=[RelationshipSuggestion("LOVES", "")])
        )

        assert result.errors == ["Relationship 0 is missing type or target"]


class TestEntityRules:
    """Tests for config-driven rules."""

    def test_blocking_and_warning_split(self, registry):
        document = make_document(metadata={
            "name": "Aladdin",
            "description": "Too short",
            "characterType": "sidekick",
        })

        result = DocumentValidator().validate(document, registry.get('character'))

        assert result.valid is False
        assert result.errors == ["Character description must be at least 20 characters"]
        assert any(w.startswith("Character type must be one of") for w in result.warnings)

    def test_warning_only_document_is_valid(self, registry):
        document = make_document(metadata={
            "name": "Aladdin",
            "description": "A street-smart young thief from Agrabah.",
            "age": 400,
        })

        result = DocumentValidator().validate(document, registry.get('character'))

        assert result.valid is True
        assert result.warnings == ["Age must be a number between 0 and 150"]

    def test_required_fields_read_from_source(self, registry):
        document = make_document(metadata={})

        result = DocumentValidator().validate(
            document, registry.get('character'),
            source_fields={"name": "Aladdin", "description": "A street-smart young thief from Agrabah."},
        )

        assert result.valid is True

    def test_missing_required_field(self, registry):
        result = DocumentValidator().validate(make_document(metadata={"name": "Aladdin"}),
                                              registry.get('character'))

        assert "Missing required field: description" in result.errors

    def test_scene_number_custom_rule(self, registry):
        document = make_document(type="scene", metadata={"sceneNumber": 0})

        result = DocumentValidator().validate(document, registry.get('scene'))

        assert result.valid is False

    def test_conditional_rule(self):
        rule = ValidationRuleSpec(
            "prop-owner", "owner", RuleType.REQUIRED, "Owned props need an owner",
            condition=ValidationCondition("owned", ConditionOperator.EQUALS, True),
        )
        config = prop_config([rule])

        unowned = DocumentValidator().validate(make_document(metadata={"owned": False}), config)
        owned = DocumentValidator().validate(make_document(metadata={"owned": True}), config)

        assert unowned.valid is True
        assert owned.errors == ["Owned props need an owner"]

    def test_info_rule_never_reported(self):
        rule = ValidationRuleSpec("prop-colour", "colour", RuleType.ENUM, "Unusual colour",
                                  value=["gold"], severity=Severity.INFO)

        result = DocumentValidator().validate(make_document(metadata={"colour": "blue"}),
                                              prop_config([rule]))

        assert result.errors == []
        assert result.warnings == []

    def test_failing_validator_counts_as_failure(self):
        validators = ValidatorRegistry()

        def explode(value, record):
            raise RuntimeError("bad validator")

        validators.register("explode", explode)
        rule = ValidationRuleSpec("prop-x", "x", RuleType.CUSTOM, "x is invalid", validator="explode")

        result = DocumentValidator(validators).validate(make_document(), prop_config([rule]))

        assert result.errors == ["x is invalid"]

    def test_broken_pattern_reports_at_rule_severity(self):
        rule = ValidationRuleSpec("prop-code", "code", RuleType.PATTERN, "Code looks wrong",
                                  value="([", severity=Severity.WARNING)

        result = DocumentValidator().validate(make_document(metadata={"code": "A1"}),
                                              prop_config([rule]))

        assert result.valid is True
        assert result.warnings == ["Code looks wrong"]

    @pytest.mark.parametrize("rule_type,bound,value,passes", [
        (RuleType.MIN, 1, 0, False),
        (RuleType.MIN, 1, "3", True),
        (RuleType.MAX, 10, 11, False),
        (RuleType.MAX_LENGTH, 3, "abcd", False),
        (RuleType.PATTERN, r"^[A-Z]", "lamp", False),
        (RuleType.PATTERN, r"^[A-Z]", "Lamp", True),
        (RuleType.ENUM, ["a", "b"], ["a", "b"], True),
        (RuleType.MIN, 1, None, True),
    ])
    def test_rule_types(self, rule_type, bound, value, passes):
        rule = ValidationRuleSpec("prop-rule", "field", rule_type, "failed", value=bound)
        metadata = {} if value is None else {"field": value}

        result = DocumentValidator().validate(make_document(metadata=metadata or {"n": 1}),
                                              prop_config([rule]))

        assert result.valid is passes


class TestQualityGate:
    """Tests for the quality threshold."""

    def test_low_quality_warns(self):
        config = prop_config([])
        config.enrichment_strategy.quality = QualityThresholds(min_quality_score=0.6)

        result = DocumentValidator().validate(make_document(metadata={"qualityScore": 0.4}), config)

        assert result.valid is True
        assert result.warnings == ["Quality score 0.4 is below minimum 0.6"]

    def test_low_quality_blocks_when_configured(self):
        config = prop_config([])
        config.enrichment_strategy.quality = QualityThresholds(min_quality_score=0.6, block_low_quality=True)

        result = DocumentValidator().validate(make_document(metadata={"qualityScore": 0.4}), config)

        assert result.valid is False


class TestConditions:
    """Tests for condition operators."""

    def test_operators(self):
        record = {"tags": ["magic"], "name": "Lamp"}

        assert condition_holds(ValidationCondition("name", ConditionOperator.EXISTS), record)
        assert condition_holds(ValidationCondition("owner", ConditionOperator.NOT_EXISTS), record)
        assert condition_holds(ValidationCondition("tags", ConditionOperator.CONTAINS, "magic"), record)
        assert condition_holds(ValidationCondition("name", ConditionOperator.NOT_EQUALS, "Rug"), record)
        assert not condition_holds(ValidationCondition("owner", ConditionOperator.CONTAINS, "x"), record)
