"""
Entity Configuration Types

Typed, serialisable description of how one entity type is prepared: required input
fields, metadata field specs, relationship types, validation rules, enrichment
strategy and prompt templates.

EntityConfig is a closed tagged union keyed by EntityKind. Custom validation is
referenced by validator name, never by an embedded function, so every config
round-trips through to_dict()/from_dict().
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from brainprep.core.constants import (
    ContextSource,
    EnrichmentLevel,
    ALL_CONTEXT_SOURCES,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_MAX_RELATIONSHIPS,
)
from .templates import PromptTemplate


class EntityKind(Enum):
    """Known entity config variants."""
    CHARACTER = "character"
    SCENE = "scene"
    LOCATION = "location"
    EPISODE = "episode"
    CONCEPT = "concept"
    DIALOGUE = "dialogue"
    GENERIC = "generic"


class FieldType(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    ENUM = "enum"


class RuleType(Enum):
    REQUIRED = "required"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    PATTERN = "pattern"
    ENUM = "enum"
    MIN = "min"
    MAX = "max"
    CUSTOM = "custom"


class Severity(Enum):
    """Error blocks the write, warning is reported, info is only logged."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ConditionOperator(Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


@dataclass
class MetadataFieldSpec:
    """How one metadata field is produced."""
    name: str
    field_type: FieldType = FieldType.STRING
    description: str = ""
    required: bool = False
    use_llm: bool = True
    default: Any = None
    enum_values: List[str] = field(default_factory=list)
    llm_prompt: str = ""
    searchable: bool = False
    source_field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'type': self.field_type.value,
            'description': self.description,
            'required': self.required,
            'useLLM': self.use_llm,
            'default': self.default,
            'enumValues': list(self.enum_values),
            'llmPrompt': self.llm_prompt,
            'searchable': self.searchable,
            'sourceField': self.source_field,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetadataFieldSpec':
        return cls(
            name=data['name'],
            field_type=FieldType(data.get('type', 'string')),
            description=data.get('description', ""),
            required=data.get('required', False),
            use_llm=data.get('useLLM', True),
            default=data.get('default'),
            enum_values=list(data.get('enumValues', [])),
            llm_prompt=data.get('llmPrompt', ""),
            searchable=data.get('searchable', False),
            source_field=data.get('sourceField'),
        )


@dataclass
class RelationshipTypeSpec:
    """A relationship type an entity may have."""
    type: str
    target_types: List[str] = field(default_factory=list)
    description: str = ""
    auto_discover: bool = True
    bidirectional: bool = False
    inverse_type: Optional[str] = None
    confidence_threshold: Optional[float] = None
    max_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'targetTypes': list(self.target_types),
            'description': self.description,
            'autoDiscover': self.auto_discover,
            'bidirectional': self.bidirectional,
            'inverseType': self.inverse_type,
            'confidenceThreshold': self.confidence_threshold,
            'maxCount': self.max_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RelationshipTypeSpec':
        return cls(
            type=data['type'],
            target_types=list(data.get('targetTypes', [])),
            description=data.get('description', ""),
            auto_discover=data.get('autoDiscover', True),
            bidirectional=data.get('bidirectional', False),
            inverse_type=data.get('inverseType'),
            confidence_threshold=data.get('confidenceThreshold'),
            max_count=data.get('maxCount'),
        )


@dataclass
class ValidationCondition:
    """Rule applies only when this holds."""
    field: str
    operator: ConditionOperator
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {'field': self.field, 'operator': self.operator.value, 'value': self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ValidationCondition':
        return cls(
            field=data['field'],
            operator=ConditionOperator(data['operator']),
            value=data.get('value'),
        )


@dataclass
class ValidationRuleSpec:
    """Entity-specific validation rule."""
    id: str
    field: str
    rule_type: RuleType
    message: str
    value: Any = None
    severity: Severity = Severity.ERROR
    validator: Optional[str] = None
    condition: Optional[ValidationCondition] = None

    @property
    def blocking(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'field': self.field,
            'type': self.rule_type.value,
            'message': self.message,
            'value': self.value,
            'severity': self.severity.value,
            'validator': self.validator,
            'condition': self.condition.to_dict() if self.condition else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ValidationRuleSpec':
        condition = data.get('condition')
        return cls(
            id=data['id'],
            field=data['field'],
            rule_type=RuleType(data['type']),
            message=data.get('message', ""),
            value=data.get('value'),
            severity=Severity(data.get('severity', 'error')),
            validator=data.get('validator'),
            condition=ValidationCondition.from_dict(condition) if condition else None,
        )


@dataclass
class RelationshipDiscoveryConfig:
    enabled: bool = True
    use_llm: bool = True
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    max_relationships: int = DEFAULT_MAX_RELATIONSHIPS


@dataclass
class QualityThresholds:
    """Quality score gate, score in [0, 1]."""
    min_quality_score: float = 0.0
    block_low_quality: bool = False


@dataclass
class EnrichmentStrategy:
    level: EnrichmentLevel = EnrichmentLevel.STANDARD
    use_llm: bool = True
    max_items_per_source: int = 10
    include_similar: bool = True
    relationship_discovery: RelationshipDiscoveryConfig = field(
        default_factory=RelationshipDiscoveryConfig
    )
    quality: QualityThresholds = field(default_factory=QualityThresholds)

    def to_dict(self) -> Dict[str, Any]:
        rd = self.relationship_discovery
        return {
            'level': self.level.value,
            'useLLM': self.use_llm,
            'maxItemsPerSource': self.max_items_per_source,
            'includeSimilar': self.include_similar,
            'relationshipDiscovery': {
                'enabled': rd.enabled,
                'useLLM': rd.use_llm,
                'confidenceThreshold': rd.confidence_threshold,
                'maxRelationships': rd.max_relationships,
            },
            'quality': {
                'minQualityScore': self.quality.min_quality_score,
                'blockLowQuality': self.quality.block_low_quality,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EnrichmentStrategy':
        rd = data.get('relationshipDiscovery', {})
        quality = data.get('quality', {})
        return cls(
            level=EnrichmentLevel(data.get('level', 'standard')),
            use_llm=data.get('useLLM', True),
            max_items_per_source=data.get('maxItemsPerSource', 10),
            include_similar=data.get('includeSimilar', True),
            relationship_discovery=RelationshipDiscoveryConfig(
                enabled=rd.get('enabled', True),
                use_llm=rd.get('useLLM', True),
                confidence_threshold=rd.get('confidenceThreshold', DEFAULT_CONFIDENCE_THRESHOLD),
                max_relationships=rd.get('maxRelationships', DEFAULT_MAX_RELATIONSHIPS),
            ),
            quality=QualityThresholds(
                min_quality_score=quality.get('minQualityScore', 0.0),
                block_low_quality=quality.get('blockLowQuality', False),
            ),
        )


@dataclass
class PromptSet:
    """System prompt plus the two templates the LLM stages use."""
    system_prompt: str
    metadata: PromptTemplate
    relationships: PromptTemplate

    def templates(self) -> List[PromptTemplate]:
        return [self.metadata, self.relationships]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'systemPrompt': self.system_prompt,
            'metadata': self.metadata.to_dict(),
            'relationships': self.relationships.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PromptSet':
        return cls(
            system_prompt=data.get('systemPrompt', ""),
            metadata=PromptTemplate.from_dict(data['metadata']),
            relationships=PromptTemplate.from_dict(data['relationships']),
        )


@dataclass
class EntityFeatures:
    """Per-entity overrides of the global feature flags; None defers to global."""
    enable_caching: Optional[bool] = None
    enable_validation: Optional[bool] = None
    enable_relationship_discovery: Optional[bool] = None
    enable_queue: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enableCaching': self.enable_caching,
            'enableValidation': self.enable_validation,
            'enableRelationshipDiscovery': self.enable_relationship_discovery,
            'enableQueue': self.enable_queue,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EntityFeatures':
        return cls(
            enable_caching=data.get('enableCaching'),
            enable_validation=data.get('enableValidation'),
            enable_relationship_discovery=data.get('enableRelationshipDiscovery'),
            enable_queue=data.get('enableQueue'),
        )


@dataclass
class EntityConfig:
    """How one entity type flows through the pipeline."""
    type: str
    kind: EntityKind
    prompts: PromptSet
    display_name: str = ""
    description: str = ""
    required_fields: List[str] = field(default_factory=list)
    optional_fields: List[str] = field(default_factory=list)
    context_sources: List[ContextSource] = field(default_factory=lambda: list(ALL_CONTEXT_SOURCES))
    metadata_fields: List[MetadataFieldSpec] = field(default_factory=list)
    relationship_types: List[RelationshipTypeSpec] = field(default_factory=list)
    validation_rules: List[ValidationRuleSpec] = field(default_factory=list)
    enrichment_strategy: EnrichmentStrategy = field(default_factory=EnrichmentStrategy)
    features: EntityFeatures = field(default_factory=EntityFeatures)

    def llm_fields(self) -> List[MetadataFieldSpec]:
        return [f for f in self.metadata_fields if f.use_llm]

    def relationship_spec(self, rel_type: str) -> Optional[RelationshipTypeSpec]:
        for spec in self.relationship_types:
            if spec.type == rel_type:
                return spec
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'kind': self.kind.value,
            'displayName': self.display_name,
            'description': self.description,
            'requiredFields': list(self.required_fields),
            'optionalFields': list(self.optional_fields),
            'contextSources': [s.value for s in self.context_sources],
            'metadataFields': [f.to_dict() for f in self.metadata_fields],
            'relationshipTypes': [r.to_dict() for r in self.relationship_types],
            'validationRules': [r.to_dict() for r in self.validation_rules],
            'enrichmentStrategy': self.enrichment_strategy.to_dict(),
            'prompts': self.prompts.to_dict(),
            'features': self.features.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EntityConfig':
        return cls(
            type=data['type'],
            kind=EntityKind(data.get('kind', 'generic')),
            display_name=data.get('displayName', ""),
            description=data.get('description', ""),
            required_fields=list(data.get('requiredFields', [])),
            optional_fields=list(data.get('optionalFields', [])),
            context_sources=[
                ContextSource(s) for s in data.get('contextSources', [s.value for s in ALL_CONTEXT_SOURCES])
            ],
            metadata_fields=[MetadataFieldSpec.from_dict(f) for f in data.get('metadataFields', [])],
            relationship_types=[
                RelationshipTypeSpec.from_dict(r) for r in data.get('relationshipTypes', [])
            ],
            validation_rules=[
                ValidationRuleSpec.from_dict(r) for r in data.get('validationRules', [])
            ],
            enrichment_strategy=EnrichmentStrategy.from_dict(data.get('enrichmentStrategy', {})),
            prompts=PromptSet.from_dict(data['prompts']),
            features=EntityFeatures.from_dict(data.get('features', {})),
        )
