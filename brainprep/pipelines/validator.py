"""
Brainprep Document Validator

Checks a built document before it is cached or written. Structural problems
(missing id, type, project or text; relationships without type or target) always
block. Entity rules are dispatched by rule type and block or warn according to
their severity.
"""

import re
from typing import Any, Dict, List, Mapping, Optional

from brainprep.config.types import (
    ConditionOperator,
    EntityConfig,
    RuleType,
    Severity,
    ValidationCondition,
    ValidationRuleSpec,
)
from brainprep.config.validators import ValidatorRegistry
from brainprep.core.constants import TEXT_MAX_LENGTH, TEXT_MIN_LENGTH
from brainprep.core.logging_config import get_logger
from brainprep.core.models import EnrichedDocument, ValidationResult

logger = get_logger("pipelines.validator")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def condition_holds(condition: ValidationCondition, record: Mapping[str, Any]) -> bool:
    value = record.get(condition.field)
    op = condition.operator

    if op == ConditionOperator.EXISTS:
        return not _is_empty(value)
    if op == ConditionOperator.NOT_EXISTS:
        return _is_empty(value)
    if op == ConditionOperator.EQUALS:
        return value == condition.value
    if op == ConditionOperator.NOT_EQUALS:
        return value != condition.value
    if op == ConditionOperator.CONTAINS:
        try:
            return condition.value in value
        except TypeError:
            return False
    return False


class DocumentValidator:
    """
    Structural and rule-based document validation.

    Field lookup for rules: document metadata first, then the document's own
    attributes, then the raw entity fields.
    """

    def __init__(self, validators: Optional[ValidatorRegistry] = None):
        self.validators = validators or ValidatorRegistry()

    def validate(
        self,
        document: EnrichedDocument,
        entity_config: Optional[EntityConfig] = None,
        source_fields: Optional[Dict[str, Any]] = None,
    ) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        self._check_structure(document, errors, warnings)

        if entity_config is not None:
            record = self.field_view(document, source_fields)
            for name in entity_config.required_fields:
                if _is_empty(record.get(name)):
                    errors.append(f"Missing required field: {name}")
            for rule in entity_config.validation_rules:
                self._apply_rule(rule, record, errors, warnings)
            self._check_quality(document, entity_config, errors, warnings)

        result = ValidationResult(valid=not errors, errors=errors, warnings=warnings)
        if errors:
            logger.debug(f"Document {document.id} failed validation: {errors}")
        return result

    @staticmethod
    def field_view(document: EnrichedDocument,
                   source_fields: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        record: Dict[str, Any] = dict(source_fields or {})
        record.update({
            'id': document.id,
            'type': document.type,
            'project_id': document.project_id,
            'text': document.text,
        })
        record.update(document.metadata)
        return record

    # =========================================================================
    # CHECKS
    # =========================================================================

    def _check_structure(self, document: EnrichedDocument,
                         errors: List[str], warnings: List[str]) -> None:
        for attr, label in (('id', 'Document id'), ('type', 'Document type'),
                            ('project_id', 'Project id'), ('text', 'Document text')):
            if _is_empty(getattr(document, attr, None)):
                errors.append(f"{label} is required")

        text_length = len(document.text or "")
        if document.text and text_length < TEXT_MIN_LENGTH:
            warnings.append(f"Text is very short ({text_length} characters)")
        elif text_length > TEXT_MAX_LENGTH:
            warnings.append(f"Text is very long ({text_length} characters)")

        if not document.metadata:
            warnings.append("Document has no metadata")

        if not document.relationships:
            warnings.append("Document has no relationships")
        for index, rel in enumerate(document.relationships):
            if not rel.type or not rel.target_id:
                errors.append(f"Relationship {index} is missing type or target")

    def _check_quality(self, document: EnrichedDocument, config: EntityConfig,
                       errors: List[str], warnings: List[str]) -> None:
        quality = config.enrichment_strategy.quality
        score = document.metadata.get('qualityScore')
        if score is None or quality.min_quality_score <= 0:
            return
        if score < quality.min_quality_score:
            message = f"Quality score {score} is below minimum {quality.min_quality_score}"
            (errors if quality.block_low_quality else warnings).append(message)

    def _apply_rule(self, rule: ValidationRuleSpec, record: Mapping[str, Any],
                    errors: List[str], warnings: List[str]) -> None:
        if rule.condition is not None and not condition_holds(rule.condition, record):
            return

        if self._passes(rule, record.get(rule.field), record):
            return

        if rule.severity == Severity.ERROR:
            errors.append(rule.message)
        elif rule.severity == Severity.WARNING:
            warnings.append(rule.message)
        else:
            logger.info(f"Validation note [{rule.id}]: {rule.message}")

    def _passes(self, rule: ValidationRuleSpec, value: Any, record: Mapping[str, Any]) -> bool:
        kind = rule.rule_type

        if kind == RuleType.REQUIRED:
            return not _is_empty(value)
        if kind == RuleType.CUSTOM:
            try:
                return bool(self.validators.get(rule.validator)(value, record))
            except Exception as e:
                logger.error(f"Validator '{rule.validator}' failed on {rule.field}: {e}")
                return False

        # Remaining rule types only constrain values that are present
        if _is_empty(value):
            return True

        if kind == RuleType.MIN_LENGTH:
            return not hasattr(value, '__len__') or len(value) >= rule.value
        if kind == RuleType.MAX_LENGTH:
            return not hasattr(value, '__len__') or len(value) <= rule.value
        if kind == RuleType.PATTERN:
            try:
                return re.search(rule.value, str(value)) is not None
            except re.error as e:
                logger.error(f"Pattern in rule '{rule.id}' is invalid: {e}")
                return False
        if kind == RuleType.ENUM:
            allowed = rule.value or []
            if isinstance(value, list):
                return all(v in allowed for v in value)
            return value in allowed
        if kind in (RuleType.MIN, RuleType.MAX):
            number = _as_number(value)
            if number is None:
                return False
            return number >= rule.value if kind == RuleType.MIN else number <= rule.value

        logger.warning(f"Unknown rule type {kind} in rule {rule.id}")
        return True
