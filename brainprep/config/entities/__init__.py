"""
Shipped entity configurations.
"""

from typing import Callable, List

from brainprep.config.types import EntityConfig
from .character import character_config
from .concept import concept_config
from .dialogue import dialogue_config
from .episode import episode_config
from .location import location_config
from .scene import scene_config

BUILTIN_CONFIG_FACTORIES: List[Callable[[], EntityConfig]] = [
    character_config,
    scene_config,
    location_config,
    episode_config,
    concept_config,
    dialogue_config,
]


def builtin_configs() -> List[EntityConfig]:
    """Fresh instances of every shipped entity config."""
    return [factory() for factory in BUILTIN_CONFIG_FACTORIES]


__all__ = [
    'BUILTIN_CONFIG_FACTORIES',
    'builtin_configs',
    'character_config',
    'scene_config',
    'location_config',
    'episode_config',
    'concept_config',
    'dialogue_config',
]
