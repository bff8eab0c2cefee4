"""
Brainprep Data Enricher

Merges the raw entity, its gathered context and generated metadata into the
representation a document is built from, and scores its quality.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from brainprep.core.logging_config import get_logger
from brainprep.core.models import GatheredContext, RawEntity, RelationshipSuggestion
from brainprep.pipelines.context_gatherer import describe_context
from brainprep.pipelines.metadata_generator import BOOKKEEPING_FIELDS

logger = get_logger("pipelines.enricher")

# Quality rubric: each criterion met adds its weight
QUALITY_WEIGHTS = {
    'name': 0.2,
    'description': 0.2,
    'metadata_breadth': 0.2,
    'generated_summary': 0.2,
    'relationships': 0.2,
}
MIN_METADATA_FIELDS = 4


@dataclass
class EnrichedRepresentation:
    """Raw entity plus everything derived for it."""
    original: Dict[str, Any]
    name: str
    description: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    related_entities: List[Dict[str, str]] = field(default_factory=list)
    context_summary: str = ""
    quality_score: float = 0.0


def score(name: str, description: str, metadata: Dict[str, Any],
          relationships: Sequence[RelationshipSuggestion] = ()) -> float:
    """Quality score in [0, 1]."""
    total = 0.0
    if name:
        total += QUALITY_WEIGHTS['name']
    if description:
        total += QUALITY_WEIGHTS['description']

    content_fields = [k for k, v in metadata.items()
                      if k not in BOOKKEEPING_FIELDS and v not in (None, "", [], {})]
    if len(content_fields) >= MIN_METADATA_FIELDS:
        total += QUALITY_WEIGHTS['metadata_breadth']

    if metadata.get('generationMode') == 'llm' and metadata.get('summary'):
        total += QUALITY_WEIGHTS['generated_summary']
    if relationships:
        total += QUALITY_WEIGHTS['relationships']
    return round(min(total, 1.0), 2)


def build_text(raw: RawEntity, metadata: Dict[str, Any],
               related_entities: Sequence[Dict[str, str]] = ()) -> str:
    """
    Searchable text for the brain document.

    Name, every free-text field of the raw entity, the summary when it adds
    anything, then the names of related entities.
    """
    parts: List[str] = []
    for part in (raw.name, raw.description, raw.content, raw.text):
        if part and part not in parts:
            parts.append(part)

    summary = metadata.get('summary')
    if summary and not any(str(summary) in p for p in parts):
        parts.append(str(summary))

    names = [e['name'] for e in related_entities if e.get('name')]
    if names:
        parts.append(", ".join(names))
    return "\n\n".join(parts)


class DataEnricher:
    """Builds EnrichedRepresentation and scores it."""

    def enrich(self, raw: RawEntity, context: GatheredContext,
               metadata: Dict[str, Any]) -> EnrichedRepresentation:
        related_entities = context.related.as_entities()
        enriched = EnrichedRepresentation(
            original=raw.to_dict(),
            name=raw.name,
            description=raw.description,
            text=build_text(raw, metadata, related_entities),
            metadata=dict(metadata),
            related_entities=related_entities,
            context_summary=describe_context(context),
        )
        enriched.quality_score = self.score(enriched)
        logger.debug(f"Enriched '{raw.name}' with quality {enriched.quality_score}")
        return enriched

    def score(self, enriched: EnrichedRepresentation,
              relationships: Sequence[RelationshipSuggestion] = ()) -> float:
        return score(enriched.name, enriched.description, enriched.metadata, relationships)
