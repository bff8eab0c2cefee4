"""
Concept entity configuration (themes, motifs, symbols, world-building ideas).
"""

from brainprep.core.constants import ContextSource, EnrichmentLevel
from brainprep.config.defaults import default_prompts, strategy_for_level
from brainprep.config.types import (
    EntityConfig,
    EntityKind,
    FieldType,
    MetadataFieldSpec,
    RelationshipTypeSpec,
    RuleType,
    Severity,
    ValidationRuleSpec,
)

CONCEPT_TYPES = ['theme', 'motif', 'symbol', 'philosophy', 'worldbuilding', 'plot-device']
THEMATIC_WEIGHT = ['minor', 'moderate', 'major', 'central']


def concept_config() -> EntityConfig:
    strategy = strategy_for_level(EnrichmentLevel.STANDARD)
    strategy.relationship_discovery.confidence_threshold = 0.75
    strategy.quality.min_quality_score = 0.65

    return EntityConfig(
        type='concept',
        kind=EntityKind.CONCEPT,
        display_name='Concept',
        description='Themes, motifs, symbols and world-building ideas',
        required_fields=['name', 'description'],
        optional_fields=['category'],
        context_sources=[ContextSource.PROJECT, ContextSource.KNOWLEDGE, ContextSource.DYNAMIC],
        metadata_fields=[
            MetadataFieldSpec('conceptType', FieldType.ENUM, 'Kind of concept', required=True,
                              enum_values=list(CONCEPT_TYPES), default='theme', searchable=True),
            MetadataFieldSpec('category', FieldType.STRING, 'Broad category', required=True,
                              searchable=True),
            MetadataFieldSpec('thematicWeight', FieldType.ENUM, 'Weight in the story',
                              enum_values=list(THEMATIC_WEIGHT), default='moderate'),
            MetadataFieldSpec('symbolicMeaning', FieldType.STRING, 'What the concept stands for',
                              searchable=True),
            MetadataFieldSpec('narrativeFunction', FieldType.STRING, 'Role in the narrative'),
            MetadataFieldSpec('manifestations', FieldType.ARRAY, 'How it shows up on screen', default=[]),
            MetadataFieldSpec('evolution', FieldType.STRING, 'How the concept develops'),
            MetadataFieldSpec('relatedConcepts', FieldType.ARRAY, 'Related concept names', default=[]),
        ],
        relationship_types=[
            RelationshipTypeSpec('EMBODIED_BY', ['character'], 'Characters embodying the concept'),
            RelationshipTypeSpec('EXPLORED_IN', ['scene'], 'Scenes exploring the concept'),
            RelationshipTypeSpec('RELATED_TO', ['concept'], 'Related concept', bidirectional=True),
            RelationshipTypeSpec('SYMBOLIZED_BY', ['location', 'character'], 'Symbols of the concept'),
            RelationshipTypeSpec('OPPOSES', ['concept'], 'Opposing concept', bidirectional=True),
            RelationshipTypeSpec('SUPPORTS', ['concept'], 'Supporting concept', bidirectional=True),
            RelationshipTypeSpec('APPEARS_IN', ['episode', 'scene'], 'Where the concept appears'),
        ],
        validation_rules=[
            ValidationRuleSpec('concept-name-required', 'name', RuleType.REQUIRED,
                               'Concept name is required'),
            ValidationRuleSpec('concept-description-length', 'description', RuleType.MIN_LENGTH,
                               'Concept description must be at least 30 characters', value=30),
            ValidationRuleSpec('concept-type-valid', 'conceptType', RuleType.ENUM,
                               'Concept type must be one of: ' + ', '.join(CONCEPT_TYPES),
                               value=list(CONCEPT_TYPES), severity=Severity.WARNING),
        ],
        enrichment_strategy=strategy,
        prompts=default_prompts('concept'),
    )
