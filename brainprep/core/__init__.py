"""
Brainprep Core Module

Contains core systems including configuration, constants, exceptions, logging and
the shared data model.
"""

from .config import PrepConfig, PrepSettings, load_config, save_config
from .constants import *
from .exceptions import *
from .logging_config import setup_logging, get_logger
from .models import (
    RawEntity,
    OpaqueEntity,
    PrepareOptions,
    ProjectContext,
    GatheredContext,
    RelationshipSuggestion,
    EnrichedDocument,
    ValidationResult,
    ProcessingMetrics,
    parse_raw_entity,
    build_document_id,
)

__all__ = [
    'PrepConfig',
    'PrepSettings',
    'load_config',
    'save_config',
    'setup_logging',
    'get_logger',
    # Data model
    'RawEntity',
    'OpaqueEntity',
    'PrepareOptions',
    'ProjectContext',
    'GatheredContext',
    'RelationshipSuggestion',
    'EnrichedDocument',
    'ValidationResult',
    'ProcessingMetrics',
    'parse_raw_entity',
    'build_document_id',
]
