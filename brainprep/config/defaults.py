"""
Default entity configuration.

Shared metadata fields, relationship types, validation rules and prompt builders
used by the shipped entity configs, plus the generic config returned for entity
types nobody registered.
"""

from typing import Dict, List

from brainprep.core.constants import (
    ContextSource,
    EnrichmentLevel,
    DEFAULT_CONFIDENCE_THRESHOLD,
)
from .templates import PromptTemplate
from .types import (
    EntityConfig,
    EntityKind,
    EnrichmentStrategy,
    FieldType,
    MetadataFieldSpec,
    PromptSet,
    QualityThresholds,
    RelationshipDiscoveryConfig,
    RelationshipTypeSpec,
    RuleType,
    Severity,
    ValidationRuleSpec,
)


# =============================================================================
# ENRICHMENT STRATEGIES
# =============================================================================

def strategy_for_level(level: EnrichmentLevel) -> EnrichmentStrategy:
    """Fresh enrichment strategy with the stock settings for a level."""
    if level == EnrichmentLevel.MINIMAL:
        return EnrichmentStrategy(
            level=level,
            use_llm=False,
            max_items_per_source=10,
            include_similar=False,
            relationship_discovery=RelationshipDiscoveryConfig(
                enabled=False, use_llm=False, confidence_threshold=0.8, max_relationships=5
            ),
        )
    if level == EnrichmentLevel.COMPREHENSIVE:
        return EnrichmentStrategy(
            level=level,
            use_llm=True,
            max_items_per_source=50,
            include_similar=True,
            relationship_discovery=RelationshipDiscoveryConfig(
                enabled=True, use_llm=True, confidence_threshold=0.6, max_relationships=30
            ),
            quality=QualityThresholds(min_quality_score=0.7),
        )
    return EnrichmentStrategy(
        level=EnrichmentLevel.STANDARD,
        use_llm=True,
        max_items_per_source=25,
        include_similar=True,
        relationship_discovery=RelationshipDiscoveryConfig(
            enabled=True,
            use_llm=True,
            confidence_threshold=DEFAULT_CONFIDENCE_THRESHOLD,
            max_relationships=15,
        ),
        quality=QualityThresholds(min_quality_score=0.6),
    )


# =============================================================================
# COMMON FIELDS, RELATIONSHIPS AND RULES
# =============================================================================

def summary_field() -> MetadataFieldSpec:
    return MetadataFieldSpec(
        name='summary',
        field_type=FieldType.STRING,
        description='Brief summary of the entity',
        llm_prompt='Write a concise summary (2-3 sentences).',
        searchable=True,
    )


def tags_field() -> MetadataFieldSpec:
    return MetadataFieldSpec(
        name='tags',
        field_type=FieldType.ARRAY,
        description='Relevant tags for categorization',
        default=[],
        llm_prompt='List 3-5 relevant tags.',
        searchable=True,
    )


def sentiment_field() -> MetadataFieldSpec:
    return MetadataFieldSpec(
        name='sentiment',
        field_type=FieldType.ENUM,
        description='Overall emotional tone',
        enum_values=['positive', 'negative', 'neutral', 'mixed'],
        default='neutral',
    )


def significance_field() -> MetadataFieldSpec:
    return MetadataFieldSpec(
        name='significance',
        field_type=FieldType.ENUM,
        description='Narrative significance level',
        enum_values=['low', 'medium', 'high', 'critical'],
        default='medium',
    )


def common_relationship_types() -> List[RelationshipTypeSpec]:
    return [
        RelationshipTypeSpec(
            type='RELATES_TO',
            target_types=['*'],
            description='General relationship between entities',
        ),
        RelationshipTypeSpec(
            type='APPEARS_IN',
            target_types=['scene', 'episode'],
            description='Entity appears in another entity',
            bidirectional=True,
            inverse_type='CONTAINS',
            confidence_threshold=0.8,
        ),
        RelationshipTypeSpec(
            type='REFERENCES',
            target_types=['*'],
            description='Entity references another entity',
            confidence_threshold=0.6,
        ),
    ]


def require_name_rule() -> ValidationRuleSpec:
    return ValidationRuleSpec(
        id='require_name',
        field='name',
        rule_type=RuleType.REQUIRED,
        message='Name is required',
        severity=Severity.ERROR,
    )


def description_length_rule(min_length: int = 10, severity: Severity = Severity.WARNING) -> ValidationRuleSpec:
    return ValidationRuleSpec(
        id='min_description_length',
        field='description',
        rule_type=RuleType.MIN_LENGTH,
        value=min_length,
        message=f'Description must be at least {min_length} characters',
        severity=severity,
    )


# =============================================================================
# PROMPTS
# =============================================================================

METADATA_PROMPT_VARIABLES = [
    'entity_type',
    'project_name',
    'project_type',
    'project_genre',
    'project_themes',
    'project_tone',
    'entity_data',
    'context_summary',
    'field_specs',
]

RELATIONSHIP_PROMPT_VARIABLES = [
    'entity_type',
    'entity_text',
    'project_name',
    'relationship_types',
    'candidates',
    'similar_content',
]


def metadata_template(entity_type: str, guidelines: List[str] = None) -> PromptTemplate:
    """Metadata extraction prompt for an entity type, with optional extra guidelines."""
    guideline_text = "\n".join(f"- {g}" for g in (guidelines or []))
    if guideline_text:
        guideline_text = f"\nGUIDELINES:\n{guideline_text}\n"

    template = f"""You are extracting metadata for a {{entity_type}} in a film production.

PROJECT: {{project_name}} ({{project_type}})
Genre: {{project_genre}}
Themes: {{project_themes}}
Tone: {{project_tone}}

{entity_type.upper()} DATA:
{{entity_data}}

CONTEXT:
{{context_summary}}

FIELDS TO GENERATE:
{{field_specs}}
{guideline_text}
Return ONLY a JSON object with the fields above. Use null for fields you cannot determine."""
    return PromptTemplate(
        name=f"{entity_type}.metadata",
        template=template,
        variables=list(METADATA_PROMPT_VARIABLES),
    )


def relationship_template(entity_type: str) -> PromptTemplate:
    template = """You are mapping relationships for a {entity_type} in the film project {project_name}.

ENTITY:
{entity_text}

ALLOWED RELATIONSHIP TYPES:
{relationship_types}

KNOWN ENTITIES (id, type, name):
{candidates}

SIMILAR CONTENT:
{similar_content}

Return ONLY a JSON array. Each element has the keys type, targetId, targetType,
confidence (0.0-1.0) and reasoning. Only reference ids from KNOWN ENTITIES."""
    return PromptTemplate(
        name=f"{entity_type}.relationships",
        template=template,
        variables=list(RELATIONSHIP_PROMPT_VARIABLES),
    )


def default_prompts(entity_type: str, system_prompt: str = None,
                    guidelines: List[str] = None) -> PromptSet:
    return PromptSet(
        system_prompt=system_prompt or (
            "You are an expert story analyst preparing film production data "
            "for a knowledge graph. Respond with valid JSON only."
        ),
        metadata=metadata_template(entity_type, guidelines),
        relationships=relationship_template(entity_type),
    )


# =============================================================================
# GENERIC CONFIG
# =============================================================================

_LEVEL_SOURCES: Dict[EnrichmentLevel, List[ContextSource]] = {
    EnrichmentLevel.MINIMAL: [ContextSource.PROJECT],
    EnrichmentLevel.STANDARD: [ContextSource.PROJECT, ContextSource.KNOWLEDGE, ContextSource.DYNAMIC],
    EnrichmentLevel.COMPREHENSIVE: [
        ContextSource.PROJECT,
        ContextSource.STRUCTURED,
        ContextSource.KNOWLEDGE,
        ContextSource.DYNAMIC,
    ],
}


def generic_config(entity_type: str,
                   level: EnrichmentLevel = EnrichmentLevel.STANDARD) -> EntityConfig:
    """Config for an entity type with no registered config."""
    fields = [summary_field()]
    if level != EnrichmentLevel.MINIMAL:
        fields.extend([tags_field(), sentiment_field()])
    if level == EnrichmentLevel.COMPREHENSIVE:
        fields.append(significance_field())

    return EntityConfig(
        type=entity_type,
        kind=EntityKind.GENERIC,
        display_name=entity_type.replace('_', ' ').title(),
        description=f"Generic configuration for {entity_type}",
        required_fields=['name'],
        context_sources=list(_LEVEL_SOURCES[level]),
        metadata_fields=fields,
        relationship_types=common_relationship_types(),
        validation_rules=[require_name_rule(), description_length_rule()],
        enrichment_strategy=strategy_for_level(level),
        prompts=default_prompts(entity_type),
    )
