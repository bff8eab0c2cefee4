"""
Episode entity configuration.
"""

from brainprep.core.constants import ALL_CONTEXT_SOURCES, EnrichmentLevel
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

EPISODE_TYPES = ['pilot', 'regular', 'finale', 'special', 'midseason']


def episode_config() -> EntityConfig:
    strategy = strategy_for_level(EnrichmentLevel.COMPREHENSIVE)
    strategy.relationship_discovery.confidence_threshold = 0.75
    strategy.quality.min_quality_score = 0.7

    return EntityConfig(
        type='episode',
        kind=EntityKind.EPISODE,
        display_name='Episode',
        description='Episodes of a series',
        required_fields=['name', 'description', 'episodeNumber'],
        optional_fields=['seasonNumber', 'sceneIds', 'airDate', 'runtime', 'synopsis'],
        context_sources=list(ALL_CONTEXT_SOURCES),
        metadata_fields=[
            MetadataFieldSpec('episodeType', FieldType.ENUM, 'Place of the episode in the season',
                              required=True, enum_values=list(EPISODE_TYPES), default='regular'),
            MetadataFieldSpec('narrativeArc', FieldType.STRING, 'Story arc covered by the episode',
                              required=True, searchable=True),
            MetadataFieldSpec('thematicFocus', FieldType.ARRAY, 'Themes the episode explores',
                              default=[], searchable=True),
            MetadataFieldSpec('characterFocus', FieldType.ARRAY, 'Characters at the centre of the episode',
                              default=[]),
            MetadataFieldSpec('plotThreads', FieldType.ARRAY, 'Plot threads advanced', default=[]),
            MetadataFieldSpec('cliffhanger', FieldType.BOOLEAN, 'Ends on a cliffhanger', default=False),
            MetadataFieldSpec('tone', FieldType.STRING, 'Overall tone'),
            MetadataFieldSpec('seasonNumber', FieldType.NUMBER, 'Season number', use_llm=False),
            MetadataFieldSpec('episodeNumber', FieldType.NUMBER, 'Episode number', use_llm=False),
            MetadataFieldSpec('runtime', FieldType.NUMBER, 'Runtime in minutes', use_llm=False),
            MetadataFieldSpec('airDate', FieldType.STRING, 'Air date', use_llm=False),
        ],
        relationship_types=[
            RelationshipTypeSpec('CONTAINS', ['scene'], 'Scenes in the episode'),
            RelationshipTypeSpec('FEATURES', ['character'], 'Characters featured'),
            RelationshipTypeSpec('PART_OF_SEASON', ['episode'], 'Season grouping'),
            RelationshipTypeSpec('FOLLOWS', ['episode'], 'Previous episode', inverse_type='PRECEDES'),
            RelationshipTypeSpec('PRECEDES', ['episode'], 'Next episode', inverse_type='FOLLOWS'),
            RelationshipTypeSpec('EXPLORES_THEME', ['concept'], 'Themes explored'),
            RelationshipTypeSpec('SET_IN', ['location'], 'Main locations'),
            RelationshipTypeSpec('ADVANCES_PLOT', ['concept'], 'Plot devices advanced'),
            RelationshipTypeSpec('CONTAINS_DIALOGUE', ['dialogue'], 'Key dialogue'),
        ],
        validation_rules=[
            ValidationRuleSpec('episode-name-required', 'name', RuleType.REQUIRED,
                               'Episode name is required'),
            ValidationRuleSpec('episode-description-length', 'description', RuleType.MIN_LENGTH,
                               'Episode description must be at least 50 characters', value=50),
            ValidationRuleSpec('episode-number-positive', 'episodeNumber', RuleType.CUSTOM,
                               'Episode number is required and must be a positive number',
                               validator='positive_integer'),
            ValidationRuleSpec('episode-type-valid', 'episodeType', RuleType.ENUM,
                               'Episode type must be one of: ' + ', '.join(EPISODE_TYPES),
                               value=list(EPISODE_TYPES), severity=Severity.WARNING),
            ValidationRuleSpec('episode-air-date', 'airDate', RuleType.CUSTOM,
                               'Air date must be a valid date', severity=Severity.WARNING,
                               validator='iso_date_if_present'),
        ],
        enrichment_strategy=strategy,
        prompts=default_prompts(
            'episode',
            system_prompt=(
                "You are a television story editor analysing episode structure. "
                "Respond with valid JSON only."
            ),
        ),
    )
