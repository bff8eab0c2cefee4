"""
Brainprep Entity Configuration

Per-entity-type configuration: metadata schema, relationship types, validation
rules, enrichment strategy and prompt templates.
"""

from .types import (
    EntityConfig,
    EntityKind,
    EntityFeatures,
    EnrichmentStrategy,
    FieldType,
    MetadataFieldSpec,
    PromptSet,
    QualityThresholds,
    RelationshipDiscoveryConfig,
    RelationshipTypeSpec,
    RuleType,
    Severity,
    ConditionOperator,
    ValidationCondition,
    ValidationRuleSpec,
)
from .templates import PromptTemplate, TemplateValues
from .validators import ValidatorRegistry
from .defaults import generic_config, default_prompts, strategy_for_level
from .registry import ConfigRegistry

__all__ = [
    'EntityConfig',
    'EntityKind',
    'EntityFeatures',
    'EnrichmentStrategy',
    'FieldType',
    'MetadataFieldSpec',
    'PromptSet',
    'QualityThresholds',
    'RelationshipDiscoveryConfig',
    'RelationshipTypeSpec',
    'RuleType',
    'Severity',
    'ConditionOperator',
    'ValidationCondition',
    'ValidationRuleSpec',
    'PromptTemplate',
    'TemplateValues',
    'ValidatorRegistry',
    'generic_config',
    'default_prompts',
    'strategy_for_level',
    'ConfigRegistry',
]
