"""
Dialogue entity configuration.

Dialogue lines are short, so the description rules other entities carry do not
apply; the line text and the speaker are what must be present.
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

DIALOGUE_TYPES = ['dialogue', 'monologue', 'voiceover', 'internal', 'aside']
IMPORTANCE = ['low', 'medium', 'high', 'critical']


def dialogue_config() -> EntityConfig:
    strategy = strategy_for_level(EnrichmentLevel.STANDARD)
    strategy.quality.min_quality_score = 0.55

    return EntityConfig(
        type='dialogue',
        kind=EntityKind.DIALOGUE,
        display_name='Dialogue',
        description='Lines of dialogue',
        required_fields=['text', 'speaker'],
        optional_fields=['scene', 'episode', 'addressee'],
        context_sources=[ContextSource.PROJECT, ContextSource.DYNAMIC],
        metadata_fields=[
            MetadataFieldSpec('speaker', FieldType.STRING, 'Who speaks the line', required=True,
                              use_llm=False, searchable=True),
            MetadataFieldSpec('dialogueType', FieldType.ENUM, 'Kind of line', required=True,
                              enum_values=list(DIALOGUE_TYPES), default='dialogue'),
            MetadataFieldSpec('emotionalState', FieldType.STRING, 'Emotional state of the speaker'),
            MetadataFieldSpec('subtext', FieldType.STRING, 'What is meant but not said',
                              searchable=True),
            MetadataFieldSpec('narrativePurpose', FieldType.STRING, 'Why the line matters'),
            MetadataFieldSpec('tonality', FieldType.STRING, 'Delivery tone'),
            MetadataFieldSpec('contextualImportance', FieldType.ENUM, 'Importance in context',
                              enum_values=list(IMPORTANCE), default='medium'),
            MetadataFieldSpec('wordCount', FieldType.NUMBER, 'Number of words', use_llm=False),
            MetadataFieldSpec('culturalReferences', FieldType.ARRAY, 'References made in the line',
                              default=[]),
        ],
        relationship_types=[
            RelationshipTypeSpec('SPOKEN_BY', ['character'], 'Speaker of the line'),
            RelationshipTypeSpec('PART_OF_SCENE', ['scene'], 'Scene containing the line'),
            RelationshipTypeSpec('ADDRESSED_TO', ['character'], 'Who the line is addressed to'),
            RelationshipTypeSpec('REFERENCES', ['character', 'concept'], 'Mentioned entity'),
            RelationshipTypeSpec('REVEALS', ['concept'], 'Concept revealed by the line'),
            RelationshipTypeSpec('RESPONDS_TO', ['dialogue'], 'Line this one answers'),
            RelationshipTypeSpec('FOLLOWED_BY', ['dialogue'], 'Next line'),
            RelationshipTypeSpec('PART_OF_EPISODE', ['episode'], 'Episode containing the line'),
        ],
        validation_rules=[
            ValidationRuleSpec('dialogue-text-required', 'text', RuleType.REQUIRED,
                               'Dialogue text is required'),
            ValidationRuleSpec('dialogue-speaker-required', 'speaker', RuleType.REQUIRED,
                               'Speaker is required'),
            ValidationRuleSpec('dialogue-type-valid', 'dialogueType', RuleType.ENUM,
                               'Dialogue type must be one of: ' + ', '.join(DIALOGUE_TYPES),
                               value=list(DIALOGUE_TYPES), severity=Severity.WARNING),
        ],
        enrichment_strategy=strategy,
        prompts=default_prompts(
            'dialogue',
            system_prompt="You are a script editor analysing dialogue. Respond with valid JSON only.",
        ),
    )
