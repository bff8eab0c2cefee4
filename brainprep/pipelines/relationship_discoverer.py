"""
Brainprep Relationship Discoverer

Suggests graph edges from the entity being prepared to entities the project
already holds. The LLM sees the enriched text and a candidate list built from
the dynamic-store samples and similar knowledge content; its suggestions are
filtered by the entity config. References the raw entity states explicitly
(a character's scenes, a scene's characters and location, an episode's scenes)
become relationships without asking the LLM.
"""

from typing import Any, Dict, List, Optional

from brainprep.config.registry import ConfigRegistry
from brainprep.config.templates import TemplateValues
from brainprep.config.types import EntityConfig
from brainprep.core.exceptions import LLMResponseError, RelationshipDiscoveryError
from brainprep.core.logging_config import get_logger
from brainprep.core.models import (
    CharacterEntity,
    EpisodeEntity,
    GatheredContext,
    RawEntity,
    RelationshipSuggestion,
    SceneEntity,
)
from brainprep.llm.client import BaseLLMClient, TokenUsage

logger = get_logger("pipelines.relationships")

EXPLICIT_CONFIDENCE = 1.0
EXPLICIT_REASONING = "Explicit reference in source data"

_RELATIONSHIP_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "type": {"type": "string"},
            "targetId": {"type": "string"},
            "targetType": {"type": "string"},
            "confidence": {"type": "number"},
            "reasoning": {"type": "string"},
        },
        "required": ["type", "targetId", "confidence"],
    },
}


def explicit_relationships(raw: Optional[RawEntity]) -> List[RelationshipSuggestion]:
    """Relationships stated directly by the raw entity's reference fields."""
    found: List[RelationshipSuggestion] = []

    def add(rel_type: str, targets: List[str], target_type: str) -> None:
        for target in targets:
            found.append(RelationshipSuggestion(
                type=rel_type,
                target_id=str(target),
                target_type=target_type,
                confidence=EXPLICIT_CONFIDENCE,
                reasoning=EXPLICIT_REASONING,
            ))

    if isinstance(raw, CharacterEntity):
        add('APPEARS_IN', raw.scenes, 'scene')
    elif isinstance(raw, SceneEntity):
        add('CONTAINS', raw.characters, 'character')
        if raw.location:
            add('LOCATED_IN', [raw.location], 'location')
    elif isinstance(raw, EpisodeEntity):
        add('CONTAINS', raw.scene_ids, 'scene')
    return found


def _doc_id(doc: Dict[str, Any]) -> Optional[str]:
    doc_id = doc.get('id') or doc.get('_id')
    return str(doc_id) if doc_id is not None else None


class RelationshipDiscoverer:
    """
    LLM-assisted relationship discovery with config-driven filtering.

    Features:
    - Per-type confidence thresholds, falling back to the strategy threshold
    - Undeclared relationship types dropped
    - Deduplication by (type, target) keeping the highest confidence
    - Per-type max_count and an overall max_relationships cap
    """

    def __init__(self, llm: Optional[BaseLLMClient], registry: ConfigRegistry):
        self.llm = llm
        self.registry = registry

    async def discover(
        self,
        text: str,
        context: GatheredContext,
        project_id: str,
        entity_type: str = "",
        raw_entity: Optional[RawEntity] = None,
        usage: Optional[TokenUsage] = None,
    ) -> List[RelationshipSuggestion]:
        config = self.registry.get_or_default(entity_type)
        settings = config.enrichment_strategy.relationship_discovery

        suggestions: List[RelationshipSuggestion] = []
        if self.llm is not None and settings.enabled and settings.use_llm:
            candidates = self.candidates(context, config, raw_entity)
            if candidates:
                try:
                    suggestions = await self._suggest(text, context, config, candidates, usage)
                except Exception as e:
                    error = RelationshipDiscoveryError(
                        f"Relationship discovery failed for {entity_type} in {project_id}",
                        {"reason": str(e)},
                    )
                    logger.warning(str(error))

        result = self.filter_suggestions(suggestions, config, explicit_relationships(raw_entity))
        logger.debug(f"{len(result)} relationships for {entity_type} "
                     f"({len(suggestions)} suggested)")
        return result

    def candidates(self, context: GatheredContext, config: EntityConfig,
                   raw: Optional[RawEntity] = None) -> List[Dict[str, str]]:
        """Known entities the LLM may link to: id, type and name."""
        limit = config.enrichment_strategy.max_items_per_source
        own_id = raw.id if raw is not None else None
        seen = set()
        found: List[Dict[str, str]] = []

        def add(doc: Dict[str, Any], entity_type: str) -> None:
            doc_id = _doc_id(doc)
            if not doc_id or doc_id == own_id or doc_id in seen:
                return
            seen.add(doc_id)
            found.append({
                'id': doc_id,
                'type': entity_type,
                'name': str(doc.get('name') or doc.get('title') or ""),
            })

        for collection, docs in context.dynamic_store.samples.items():
            for doc in docs[:limit]:
                add(doc, collection[:-1] if collection.endswith('s') else collection)

        if config.enrichment_strategy.include_similar:
            for node in context.knowledge.similar_content[:limit]:
                add(node, str(node.get('type') or ""))
        return found

    async def _suggest(
        self,
        text: str,
        context: GatheredContext,
        config: EntityConfig,
        candidates: List[Dict[str, str]],
        usage: Optional[TokenUsage],
    ) -> List[RelationshipSuggestion]:
        rel_types = [r for r in config.relationship_types if r.auto_discover]
        values = TemplateValues(
            entity_type=config.type,
            entity_text=text,
            project_name=context.project.name,
            relationship_types="\n".join(
                f"- {r.type} -> {', '.join(r.target_types) or 'any'}: {r.description}"
                for r in rel_types
            ) or "- RELATES_TO -> any: General relationship",
            candidates="\n".join(f"- {c['id']} | {c['type']} | {c['name']}" for c in candidates),
            similar_content="\n".join(
                f"- {str(n.get('content') or n.get('text') or '')[:200]}"
                for n in context.knowledge.similar_content[:5]
            ) or "none",
        )

        result = await self.llm.execute(
            config.prompts.relationships.render(values),
            schema=_RELATIONSHIP_SCHEMA,
            system_prompt=config.prompts.system_prompt,
        )
        if usage is not None:
            usage.add(result)

        items = result.structured
        if isinstance(items, dict):
            items = items.get('relationships')
        if not isinstance(items, list):
            raise LLMResponseError("Relationship response is not a JSON array")

        parsed = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                parsed.append(RelationshipSuggestion.from_dict(item))
            except (TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed suggestion: {e}")
        return parsed

    def filter_suggestions(
        self,
        suggestions: List[RelationshipSuggestion],
        config: EntityConfig,
        explicit: Optional[List[RelationshipSuggestion]] = None,
    ) -> List[RelationshipSuggestion]:
        """
        Apply thresholds, declared types, dedup, ordering and caps.

        Explicit relationships skip the type and threshold checks but count
        towards the caps.
        """
        settings = config.enrichment_strategy.relationship_discovery
        declared = {r.type: r for r in config.relationship_types}

        best: Dict[tuple, RelationshipSuggestion] = {}
        for suggestion in explicit or []:
            best[suggestion.key] = suggestion

        for suggestion in suggestions:
            if not suggestion.type or not suggestion.target_id:
                continue
            if not 0.0 <= suggestion.confidence <= 1.0:
                logger.debug(f"Dropping {suggestion.key}: confidence {suggestion.confidence} outside [0, 1]")
                continue
            spec = declared.get(suggestion.type)
            if declared and spec is None:
                continue
            threshold = settings.confidence_threshold
            if spec is not None and spec.confidence_threshold is not None:
                threshold = spec.confidence_threshold
            if suggestion.confidence < threshold:
                continue
            current = best.get(suggestion.key)
            if current is None or suggestion.confidence > current.confidence:
                best[suggestion.key] = suggestion

        ordered = sorted(best.values(), key=lambda s: s.confidence, reverse=True)

        per_type: Dict[str, int] = {}
        result: List[RelationshipSuggestion] = []
        for suggestion in ordered:
            if len(result) >= settings.max_relationships:
                break
            spec = declared.get(suggestion.type)
            count = per_type.get(suggestion.type, 0)
            if spec is not None and spec.max_count is not None and count >= spec.max_count:
                continue
            per_type[suggestion.type] = count + 1
            result.append(suggestion)
        return result
