"""
Scene entity configuration.
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

SCENE_TYPES = ['action', 'dialogue', 'exposition', 'transition', 'montage']
PLOT_SIGNIFICANCE = ['low', 'medium', 'high', 'critical']
PACING = ['slow', 'medium', 'fast', 'variable']


def scene_config() -> EntityConfig:
    strategy = strategy_for_level(EnrichmentLevel.STANDARD)
    strategy.relationship_discovery.confidence_threshold = 0.7
    strategy.quality.min_quality_score = 0.65

    return EntityConfig(
        type='scene',
        kind=EntityKind.SCENE,
        display_name='Scene',
        description='Individual scenes of a script or episode',
        required_fields=['name', 'description', 'sceneNumber'],
        optional_fields=['location', 'timeOfDay', 'characters', 'duration'],
        context_sources=list(ALL_CONTEXT_SOURCES),
        metadata_fields=[
            MetadataFieldSpec('sceneType', FieldType.ENUM, 'Kind of scene', required=True,
                              enum_values=list(SCENE_TYPES), default='dialogue', searchable=True),
            MetadataFieldSpec('narrativeFunction', FieldType.STRING, 'Purpose of the scene in the story',
                              required=True, searchable=True),
            MetadataFieldSpec('plotSignificance', FieldType.ENUM, 'Weight of the scene in the plot',
                              required=True, enum_values=list(PLOT_SIGNIFICANCE), default='medium'),
            MetadataFieldSpec('emotionalTone', FieldType.STRING, 'Overall emotional atmosphere'),
            MetadataFieldSpec('characterDevelopment', FieldType.OBJECT,
                              'Map of character name to how the scene develops them', default={}),
            MetadataFieldSpec('thematicElements', FieldType.ARRAY, 'Themes present in the scene',
                              default=[], searchable=True),
            MetadataFieldSpec('continuityNotes', FieldType.STRING, 'Continuity details to preserve'),
            MetadataFieldSpec('visualStyle', FieldType.STRING, 'Visual treatment of the scene'),
            MetadataFieldSpec('pacing', FieldType.ENUM, 'Scene pacing',
                              enum_values=list(PACING), default='medium'),
            MetadataFieldSpec('duration', FieldType.NUMBER, 'Estimated duration in seconds', use_llm=False),
            MetadataFieldSpec('timeOfDay', FieldType.STRING, 'Time of day', use_llm=False),
            MetadataFieldSpec('atmosphere', FieldType.STRING, 'Mood and feel of the scene'),
        ],
        relationship_types=[
            RelationshipTypeSpec('FEATURES', ['character'], 'Characters featured in the scene'),
            RelationshipTypeSpec('SET_IN', ['location'], 'Where the scene takes place'),
            RelationshipTypeSpec('PART_OF', ['episode'], 'Episode containing the scene'),
            RelationshipTypeSpec('FOLLOWS', ['scene'], 'Scene that comes before',
                                 inverse_type='PRECEDES'),
            RelationshipTypeSpec('PRECEDES', ['scene'], 'Scene that comes after',
                                 inverse_type='FOLLOWS'),
            RelationshipTypeSpec('REFERENCES', ['character', 'concept'], 'Mentioned but not present'),
            RelationshipTypeSpec('PARALLEL_TO', ['scene'], 'Scene mirroring this one',
                                 bidirectional=True),
            RelationshipTypeSpec('CONTAINS_DIALOGUE', ['dialogue'], 'Dialogue lines in the scene'),
        ],
        validation_rules=[
            ValidationRuleSpec('scene-name-required', 'name', RuleType.REQUIRED,
                               'Scene name is required'),
            ValidationRuleSpec('scene-description-length', 'description', RuleType.MIN_LENGTH,
                               'Scene description must be at least 30 characters', value=30),
            ValidationRuleSpec('scene-number-positive', 'sceneNumber', RuleType.CUSTOM,
                               'Scene number must be a positive integer', validator='positive_integer'),
            ValidationRuleSpec('scene-type-valid', 'sceneType', RuleType.ENUM,
                               'Scene type must be one of: ' + ', '.join(SCENE_TYPES),
                               value=list(SCENE_TYPES), severity=Severity.WARNING),
            ValidationRuleSpec('scene-significance-valid', 'plotSignificance', RuleType.ENUM,
                               'Plot significance must be one of: ' + ', '.join(PLOT_SIGNIFICANCE),
                               value=list(PLOT_SIGNIFICANCE), severity=Severity.WARNING),
        ],
        enrichment_strategy=strategy,
        prompts=default_prompts(
            'scene',
            system_prompt=(
                "You are an expert in screenplay structure and scene analysis. "
                "Respond with valid JSON only."
            ),
            guidelines=['Judge plot significance against the whole project, not the scene alone'],
        ),
    )
