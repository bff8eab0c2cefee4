"""
Character entity configuration.

Characters get the comprehensive treatment: the widest metadata schema, eight
relationship types and blocking checks on name and description.
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

CHARACTER_TYPES = ['protagonist', 'antagonist', 'supporting', 'minor']

SYSTEM_PROMPT = (
    "You are an expert in character analysis for film and television productions. "
    "Respond with valid JSON only."
)


def character_config() -> EntityConfig:
    strategy = strategy_for_level(EnrichmentLevel.COMPREHENSIVE)
    strategy.max_items_per_source = 30
    strategy.relationship_discovery.confidence_threshold = 0.7
    strategy.relationship_discovery.max_relationships = 25
    strategy.quality.min_quality_score = 0.6

    return EntityConfig(
        type='character',
        kind=EntityKind.CHARACTER,
        display_name='Character',
        description='Fictional characters in stories, scripts and narratives',
        required_fields=['name', 'description'],
        optional_fields=['role', 'backstory', 'personality', 'appearance', 'voice', 'age', 'relationships'],
        context_sources=[ContextSource.PROJECT, ContextSource.KNOWLEDGE, ContextSource.DYNAMIC],
        metadata_fields=[
            MetadataFieldSpec(
                name='characterType',
                field_type=FieldType.ENUM,
                description='Type of character in the narrative',
                required=True,
                enum_values=list(CHARACTER_TYPES),
                default='supporting',
                llm_prompt='Protagonist, antagonist, supporting or minor, based on role and importance.',
                searchable=True,
            ),
            MetadataFieldSpec(
                name='role',
                field_type=FieldType.STRING,
                description='Primary role of the character in the story',
                required=True,
                llm_prompt='Primary role, e.g. hero, mentor, love interest, comic relief.',
                searchable=True,
            ),
            MetadataFieldSpec(
                name='archetypePattern',
                field_type=FieldType.STRING,
                description='Archetypal pattern the character follows',
                required=True,
                llm_prompt='Archetype, e.g. The Hero, The Shadow, The Mentor, The Trickster.',
                searchable=True,
            ),
            MetadataFieldSpec(
                name='visualSignature',
                description='Distinctive visual characteristics or style',
            ),
            MetadataFieldSpec(
                name='personalityTraits',
                field_type=FieldType.ARRAY,
                description='Key personality traits',
                default=[],
                llm_prompt='3-5 key personality traits.',
                searchable=True,
            ),
            MetadataFieldSpec(
                name='storyFunction',
                description='Function in advancing plot or theme',
            ),
            MetadataFieldSpec(
                name='thematicConnection',
                description="Connection to the project's themes",
                searchable=True,
            ),
            MetadataFieldSpec(
                name='sceneAppearances',
                field_type=FieldType.ARRAY,
                description='Scene ids where the character appears',
                use_llm=False,
                default=[],
                source_field='scenes',
            ),
            MetadataFieldSpec(
                name='relationshipDynamics',
                field_type=FieldType.OBJECT,
                description='Map of character name to the nature of the relationship',
                default={},
            ),
            MetadataFieldSpec(
                name='narrativeArc',
                description='Character arc across the story',
            ),
            MetadataFieldSpec(
                name='emotionalJourney',
                description='Key emotional transformations',
            ),
        ],
        relationship_types=[
            RelationshipTypeSpec('APPEARS_IN', ['scene'], 'Scenes where this character appears',
                                 confidence_threshold=0.8),
            RelationshipTypeSpec('LOVES', ['character'], 'Romantic relationship',
                                 bidirectional=True, inverse_type='LOVED_BY', confidence_threshold=0.7),
            RelationshipTypeSpec('HATES', ['character'], 'Antagonistic relationship',
                                 bidirectional=True, inverse_type='HATED_BY', confidence_threshold=0.7),
            RelationshipTypeSpec('BEFRIENDS', ['character'], 'Friendship',
                                 bidirectional=True, confidence_threshold=0.7),
            RelationshipTypeSpec('OPPOSES', ['character'], 'In conflict with',
                                 bidirectional=True, confidence_threshold=0.7),
            RelationshipTypeSpec('MENTORS', ['character'], 'Mentors this character',
                                 inverse_type='MENTORED_BY', confidence_threshold=0.8),
            RelationshipTypeSpec('FREQUENTS', ['location'], 'Locations frequently visited',
                                 confidence_threshold=0.6),
            RelationshipTypeSpec('PART_OF_EPISODE', ['episode'], 'Episodes this character appears in',
                                 confidence_threshold=0.8),
        ],
        validation_rules=[
            ValidationRuleSpec('char-name-required', 'name', RuleType.REQUIRED,
                               'Character name is required'),
            ValidationRuleSpec('char-description-required', 'description', RuleType.REQUIRED,
                               'Character description is required'),
            ValidationRuleSpec('char-description-length', 'description', RuleType.MIN_LENGTH,
                               'Character description must be at least 20 characters', value=20),
            ValidationRuleSpec('char-type-valid', 'characterType', RuleType.ENUM,
                               'Character type must be one of: ' + ', '.join(CHARACTER_TYPES),
                               value=list(CHARACTER_TYPES), severity=Severity.WARNING),
            ValidationRuleSpec('char-age-range', 'age', RuleType.CUSTOM,
                               'Age must be a number between 0 and 150',
                               severity=Severity.WARNING, validator='age_in_range'),
        ],
        enrichment_strategy=strategy,
        prompts=default_prompts(
            'character',
            system_prompt=SYSTEM_PROMPT,
            guidelines=[
                'Use project themes and tone to inform the analysis',
                'Personality traits should be specific and observable',
                'Relationship dynamics must reference actual characters',
            ],
        ),
    )
