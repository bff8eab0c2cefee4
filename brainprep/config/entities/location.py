"""
Location entity configuration.
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

LOCATION_TYPES = ['interior', 'exterior', 'mixed', 'virtual']
LOCATION_SIGNIFICANCE = ['low', 'medium', 'high', 'central']


def location_config() -> EntityConfig:
    strategy = strategy_for_level(EnrichmentLevel.STANDARD)
    strategy.quality.min_quality_score = 0.6

    return EntityConfig(
        type='location',
        kind=EntityKind.LOCATION,
        display_name='Location',
        description='Places where the story happens',
        required_fields=['name', 'description'],
        optional_fields=['locationType', 'address', 'timeOfDay', 'weather'],
        context_sources=[ContextSource.PROJECT, ContextSource.KNOWLEDGE, ContextSource.DYNAMIC],
        metadata_fields=[
            MetadataFieldSpec('locationType', FieldType.ENUM, 'Interior, exterior, mixed or virtual',
                              required=True, enum_values=list(LOCATION_TYPES), default='interior'),
            MetadataFieldSpec('significance', FieldType.ENUM, 'Importance of the location',
                              required=True, enum_values=list(LOCATION_SIGNIFICANCE), default='medium'),
            MetadataFieldSpec('atmosphere', FieldType.STRING, 'Mood and feel of the place',
                              searchable=True),
            MetadataFieldSpec('timeOfDay', FieldType.STRING, 'Typical time of day it is shown'),
            MetadataFieldSpec('weather', FieldType.STRING, 'Typical weather'),
            MetadataFieldSpec('visualElements', FieldType.ARRAY, 'Key visual elements', default=[]),
            MetadataFieldSpec('soundscape', FieldType.STRING, 'Audio environment'),
            MetadataFieldSpec('lighting', FieldType.STRING, 'Lighting conditions'),
            MetadataFieldSpec('symbolism', FieldType.STRING, 'What the place stands for in the story',
                              searchable=True),
        ],
        relationship_types=[
            RelationshipTypeSpec('HOSTS', ['scene'], 'Scenes set here'),
            RelationshipTypeSpec('FREQUENTED_BY', ['character'], 'Characters often found here'),
            RelationshipTypeSpec('NEAR', ['location'], 'Nearby location', bidirectional=True),
            RelationshipTypeSpec('PART_OF', ['location'], 'Enclosing location', inverse_type='CONTAINS'),
            RelationshipTypeSpec('CONTAINS', ['location'], 'Enclosed location', inverse_type='PART_OF'),
            RelationshipTypeSpec('ASSOCIATED_WITH', ['concept'], 'Associated theme or idea'),
            RelationshipTypeSpec('FEATURED_IN', ['episode'], 'Episodes featuring the location'),
        ],
        validation_rules=[
            ValidationRuleSpec('location-name-required', 'name', RuleType.REQUIRED,
                               'Location name is required'),
            ValidationRuleSpec('location-description-length', 'description', RuleType.MIN_LENGTH,
                               'Location description must be at least 20 characters', value=20),
            ValidationRuleSpec('location-type-valid', 'locationType', RuleType.ENUM,
                               'Location type must be one of: ' + ', '.join(LOCATION_TYPES),
                               value=list(LOCATION_TYPES), severity=Severity.WARNING),
        ],
        enrichment_strategy=strategy,
        prompts=default_prompts(
            'location',
            system_prompt=(
                "You are an expert in production design and location scouting. "
                "Respond with valid JSON only."
            ),
        ),
    )
