"""
Entity Config Registry

Holds the EntityConfig for every known entity type. Configs are checked when
they are registered, so the pipeline never sees an invalid one.
"""

import json
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from brainprep.core.config import FeatureFlags
from brainprep.core.constants import EnrichmentLevel
from brainprep.core.exceptions import InvalidConfigError, TemplateError, ConfigurationError
from brainprep.core.logging_config import get_logger
from .defaults import generic_config
from .entities import builtin_configs
from .types import EntityConfig, FieldType, RuleType
from .validators import ValidatorRegistry

logger = get_logger("config.registry")

FEATURE_NAMES = (
    'enable_caching',
    'enable_queue',
    'enable_validation',
    'enable_relationship_discovery',
)


class ConfigRegistry:
    """
    Registry of entity configurations.

    Features:
    - Registration-time validation of every config
    - Generic fallback config for unregistered entity types
    - Per-entity feature overrides on top of global feature flags
    - JSON loading of additional configs
    """

    def __init__(
        self,
        features: Optional[FeatureFlags] = None,
        validators: Optional[ValidatorRegistry] = None,
        include_builtins: bool = True,
        default_level: EnrichmentLevel = EnrichmentLevel.STANDARD,
    ):
        self.features = features or FeatureFlags()
        self.validators = validators or ValidatorRegistry()
        self.default_level = default_level
        self._configs: Dict[str, EntityConfig] = {}
        self._defaults: Dict[str, EntityConfig] = {}

        if include_builtins:
            for config in builtin_configs():
                self.register(config)

        logger.debug(f"ConfigRegistry initialized with {len(self._configs)} entity types")

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, config: EntityConfig, replace: bool = True) -> None:
        """Validate and register a config. Raises InvalidConfigError when invalid."""
        if config.type in self._configs and not replace:
            raise InvalidConfigError(f"Entity type '{config.type}' is already registered")

        self.validate(config)
        self._configs[config.type] = config
        self._defaults.pop(config.type, None)
        logger.info(f"Registered entity config: {config.type} ({config.kind.value})")

    def unregister(self, entity_type: str) -> bool:
        return self._configs.pop(entity_type, None) is not None

    def validate(self, config: EntityConfig) -> None:
        """Raise InvalidConfigError describing every problem found in the config."""
        problems: List[str] = []

        if not config.type:
            problems.append("type is empty")

        seen = set()
        for spec in config.metadata_fields:
            if spec.name in seen:
                problems.append(f"duplicate metadata field '{spec.name}'")
            seen.add(spec.name)
            if spec.field_type == FieldType.ENUM:
                if not spec.enum_values:
                    problems.append(f"enum field '{spec.name}' has no enum values")
                elif spec.default is not None and spec.default not in spec.enum_values:
                    problems.append(f"enum field '{spec.name}' default is not an allowed value")

        rel_seen = set()
        for rel in config.relationship_types:
            if rel.type in rel_seen:
                problems.append(f"duplicate relationship type '{rel.type}'")
            rel_seen.add(rel.type)
            if rel.confidence_threshold is not None and not 0.0 <= rel.confidence_threshold <= 1.0:
                problems.append(f"relationship '{rel.type}' threshold outside [0, 1]")
            if rel.max_count is not None and rel.max_count < 1:
                problems.append(f"relationship '{rel.type}' max_count must be positive")

        discovery = config.enrichment_strategy.relationship_discovery
        if not 0.0 <= discovery.confidence_threshold <= 1.0:
            problems.append("relationship discovery threshold outside [0, 1]")
        if discovery.max_relationships < 1:
            problems.append("max_relationships must be positive")
        if not 0.0 <= config.enrichment_strategy.quality.min_quality_score <= 1.0:
            problems.append("min_quality_score outside [0, 1]")

        rule_ids = set()
        for rule in config.validation_rules:
            if rule.id in rule_ids:
                problems.append(f"duplicate validation rule id '{rule.id}'")
            rule_ids.add(rule.id)
            if rule.rule_type == RuleType.CUSTOM:
                if not rule.validator:
                    problems.append(f"custom rule '{rule.id}' names no validator")
                elif rule.validator not in self.validators:
                    problems.append(f"custom rule '{rule.id}' uses unknown validator '{rule.validator}'")
            elif rule.rule_type in (RuleType.MIN_LENGTH, RuleType.MAX_LENGTH):
                if not isinstance(rule.value, int) or rule.value < 0:
                    problems.append(f"rule '{rule.id}' needs a non-negative integer length")
            elif rule.rule_type in (RuleType.MIN, RuleType.MAX):
                if not isinstance(rule.value, (int, float)):
                    problems.append(f"rule '{rule.id}' needs a numeric bound")
            elif rule.rule_type == RuleType.ENUM:
                if not isinstance(rule.value, list) or not rule.value:
                    problems.append(f"rule '{rule.id}' needs a list of allowed values")
            elif rule.rule_type == RuleType.PATTERN:
                if not isinstance(rule.value, str):
                    problems.append(f"rule '{rule.id}' needs a regex pattern")
                else:
                    try:
                        re.compile(rule.value)
                    except re.error as e:
                        problems.append(f"rule '{rule.id}' has an invalid pattern: {e}")

        for template in config.prompts.templates():
            try:
                template.check()
            except TemplateError as e:
                problems.append(e.message)

        if problems:
            raise InvalidConfigError(
                f"Invalid entity config '{config.type}'",
                {"problems": problems},
            )

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get(self, entity_type: str) -> Optional[EntityConfig]:
        return self._configs.get(entity_type)

    def get_or_default(self, entity_type: str) -> EntityConfig:
        """Registered config, or a generic one built from the default enrichment level."""
        config = self._configs.get(entity_type)
        if config is not None:
            return config

        if entity_type not in self._defaults:
            logger.debug(f"No config for '{entity_type}', using generic {self.default_level.value} config")
            self._defaults[entity_type] = generic_config(entity_type, self.default_level)
        return self._defaults[entity_type]

    def has(self, entity_type: str) -> bool:
        return entity_type in self._configs

    def registered_types(self) -> List[str]:
        return sorted(self._configs)

    def is_feature_enabled(self, entity_type: str, feature: str) -> bool:
        """Entity override first, then the global flag."""
        if feature not in FEATURE_NAMES:
            raise ConfigurationError(f"Unknown feature: {feature}")

        config = self._configs.get(entity_type)
        if config is not None:
            override = getattr(config.features, feature)
            if override is not None:
                return override
        return getattr(self.features, feature)

    # =========================================================================
    # SERIALISATION
    # =========================================================================

    def export(self, entity_types: Iterable[str] = None) -> List[dict]:
        types = entity_types or self.registered_types()
        return [self._configs[t].to_dict() for t in types if t in self._configs]

    def load_json(self, path: Union[str, Path]) -> List[str]:
        """
        Register the configs in a JSON file.

        The file holds either one config object or a list of them.

        Returns:
            Entity types registered from the file
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfigError(f"Invalid JSON in entity config file {path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read entity config file {path}: {e}")

        items = data if isinstance(data, list) else [data]
        loaded = []
        for item in items:
            try:
                config = EntityConfig.from_dict(item)
            except (KeyError, ValueError, TypeError) as e:
                raise InvalidConfigError(f"Malformed entity config in {path}: {e}")
            self.register(config)
            loaded.append(config.type)

        logger.info(f"Loaded {len(loaded)} entity configs from {path}")
        return loaded
