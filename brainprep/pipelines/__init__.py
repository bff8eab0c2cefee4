"""
Brainprep Pipelines Module

Preparation stages and the agent that runs them.
"""

from .context_gatherer import ContextGatherer, build_context_query, describe_context
from .metadata_generator import MetadataGenerator, build_output_model
from .relationship_discoverer import RelationshipDiscoverer, explicit_relationships
from .data_enricher import DataEnricher, EnrichedRepresentation, score
from .validator import DocumentValidator
from .agent import (
    BatchItemResult,
    DataPreparationAgent,
    PrepareRequest,
    PrepStage,
)

__all__ = [
    'ContextGatherer',
    'build_context_query',
    'describe_context',
    'MetadataGenerator',
    'build_output_model',
    'RelationshipDiscoverer',
    'explicit_relationships',
    'DataEnricher',
    'EnrichedRepresentation',
    'score',
    'DocumentValidator',
    'BatchItemResult',
    'DataPreparationAgent',
    'PrepareRequest',
    'PrepStage',
]
