"""
Brainprep Data Model

Request, context and document types shared across the pipeline.

RawEntity is a closed family of known entity shapes plus OpaqueEntity, the explicit
passthrough for entity kinds the registry does not know about. Everything except
EnrichedDocument is request-scoped and discarded after the request.
"""

import hashlib
import json
from dataclasses import dataclass, field, asdict
from typing import Any, ClassVar, Dict, List, Optional, Type

from .constants import CreatedByType


def _relation_id(value: Any) -> Optional[str]:
    """Id of a relation: a plain value, or an object carrying an id."""
    if isinstance(value, dict):
        value = value.get('id')
    if value is None or value == "":
        return None
    return str(value)


def _as_str_list(value: Any) -> List[str]:
    if not value:
        return []
    if not isinstance(value, (list, tuple, set)):
        value = [value]
    return [rid for rid in (_relation_id(v) for v in value) if rid is not None]


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# =============================================================================
# RAW ENTITIES
# =============================================================================

@dataclass
class RawEntity:
    """Base shape of an entity arriving from an external collection."""
    kind: ClassVar[str] = ""

    id: Optional[str] = None
    name: str = ""
    description: str = ""
    content: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RawEntity':
        entity_id = data.get('id') or data.get('_id')
        return cls(
            id=str(entity_id) if entity_id is not None else None,
            name=str(data.get('name') or ""),
            description=str(data.get('description') or ""),
            content=str(data.get('content') or ""),
            fields=dict(data),
            **cls._variant_fields(data)
        )

    @classmethod
    def _variant_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    @property
    def entity_kind(self) -> str:
        return self.kind

    @property
    def text(self) -> str:
        """Primary free text used for matching and summaries."""
        return self.description or self.content

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def fingerprint(self) -> str:
        """Stable short hash of the raw fields."""
        payload = json.dumps(self.fields, sort_keys=True, default=str)
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()[:12]

    def entity_id(self) -> str:
        """Source id, or a content-derived fallback that is stable across retries."""
        return self.id or f"new_{self.fingerprint()}"

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.fields)


@dataclass
class CharacterEntity(RawEntity):
    kind: ClassVar[str] = "character"

    role: str = ""
    scenes: List[str] = field(default_factory=list)

    @classmethod
    def _variant_fields(cls, data):
        return {
            'role': str(data.get('role') or ""),
            'scenes': _as_str_list(data.get('scenes')),
        }


@dataclass
class SceneEntity(RawEntity):
    kind: ClassVar[str] = "scene"

    scene_number: Optional[int] = None
    characters: List[str] = field(default_factory=list)
    location: Optional[str] = None

    @classmethod
    def _variant_fields(cls, data):
        return {
            'scene_number': _as_optional_int(data.get('sceneNumber')),
            'characters': _as_str_list(data.get('characters')),
            'location': _relation_id(data.get('location')),
        }


@dataclass
class LocationEntity(RawEntity):
    kind: ClassVar[str] = "location"

    location_type: str = ""

    @classmethod
    def _variant_fields(cls, data):
        return {'location_type': str(data.get('locationType') or "")}


@dataclass
class EpisodeEntity(RawEntity):
    kind: ClassVar[str] = "episode"

    episode_number: Optional[int] = None
    scene_ids: List[str] = field(default_factory=list)

    @classmethod
    def _variant_fields(cls, data):
        return {
            'episode_number': _as_optional_int(data.get('episodeNumber')),
            'scene_ids': _as_str_list(data.get('sceneIds')),
        }


@dataclass
class ConceptEntity(RawEntity):
    kind: ClassVar[str] = "concept"

    category: str = ""

    @classmethod
    def _variant_fields(cls, data):
        return {'category': str(data.get('category') or "")}


@dataclass
class DialogueEntity(RawEntity):
    kind: ClassVar[str] = "dialogue"

    speaker: str = ""
    line: str = ""

    @classmethod
    def _variant_fields(cls, data):
        return {
            'speaker': str(data.get('speaker') or ""),
            'line': str(data.get('text') or data.get('content') or ""),
        }

    @property
    def text(self) -> str:
        return self.line or self.description or self.content


@dataclass
class OpaqueEntity(RawEntity):
    """Passthrough for entity types without a known shape."""
    kind: ClassVar[str] = "opaque"

    entity_type: str = ""

    @property
    def entity_kind(self) -> str:
        return self.entity_type or self.kind


RAW_ENTITY_TYPES: Dict[str, Type[RawEntity]] = {
    cls.kind: cls
    for cls in (CharacterEntity, SceneEntity, LocationEntity,
                EpisodeEntity, ConceptEntity, DialogueEntity)
}


def parse_raw_entity(data: Any, entity_type: str) -> RawEntity:
    """
    Build the RawEntity variant for an entity type.

    Accepts an existing RawEntity (returned unchanged) or a field mapping.
    Unknown entity types become OpaqueEntity.
    """
    if isinstance(data, RawEntity):
        return data
    if not isinstance(data, dict):
        raise TypeError(f"Raw entity must be a mapping, got {type(data).__name__}")

    entity_cls = RAW_ENTITY_TYPES.get(entity_type)
    if entity_cls is None:
        entity = OpaqueEntity.from_dict(data)
        entity.entity_type = entity_type
        return entity
    return entity_cls.from_dict(data)


def build_document_id(entity_type: str, entity_id: str, project_id: str) -> str:
    """Deterministic brain document id."""
    return f"{entity_type}_{entity_id}_{project_id}"


# =============================================================================
# REQUEST OPTIONS
# =============================================================================

@dataclass
class PrepareOptions:
    """Per-request options for the agent."""
    project_id: str = ""
    entity_type: str = ""
    source_collection: Optional[str] = None
    source_id: Optional[str] = None
    skip_cache: bool = False
    user_id: Optional[str] = None
    created_by_type: CreatedByType = CreatedByType.USER
    deadline_seconds: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['created_by_type'] = self.created_by_type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PrepareOptions':
        data = dict(data)
        data['created_by_type'] = CreatedByType(data.get('created_by_type', 'user'))
        return cls(**data)


# =============================================================================
# CONTEXT
# =============================================================================

@dataclass
class ProjectContext:
    """Project-level context shared by every entity of a project."""
    id: str
    name: str
    slug: str
    type: Optional[str] = None
    genre: List[str] = field(default_factory=list)
    themes: List[str] = field(default_factory=list)
    tone: Optional[str] = None
    target_audience: Optional[str] = None
    phase: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any], project_id: str) -> 'ProjectContext':
        return cls(
            id=str(record.get('id') or project_id),
            name=record.get('name') or "Unknown Project",
            slug=record.get('slug') or project_id,
            type=record.get('type'),
            genre=_as_str_list(record.get('genre')),
            themes=_as_str_list(record.get('themes')),
            tone=record.get('tone'),
            target_audience=record.get('targetAudience'),
            phase=record.get('phase'),
            status=record.get('status'),
        )

    @classmethod
    def minimal(cls, project_id: str) -> 'ProjectContext':
        return cls(id=project_id, name="Unknown Project", slug=project_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectContext':
        return cls(**data)


@dataclass
class KnowledgeContext:
    total_count: int = 0
    similar_content: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class DynamicStoreContext:
    collections: List[str] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)
    samples: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    def sample(self, collection: str) -> List[Dict[str, Any]]:
        return self.samples.get(collection, [])


@dataclass
class RelatedEntities:
    characters: List[str] = field(default_factory=list)
    scenes: List[str] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
    concepts: List[str] = field(default_factory=list)
    episodes: List[str] = field(default_factory=list)

    def total(self) -> int:
        return sum(len(v) for v in asdict(self).values())

    def as_entities(self) -> List[Dict[str, str]]:
        """Flatten into name/type pairs, singular type names."""
        entities = []
        for group, names in asdict(self).items():
            entity_type = group[:-1]
            entities.extend({'name': name, 'type': entity_type} for name in names)
        return entities


@dataclass
class GatheredContext:
    """Everything gathered for one request."""
    project: ProjectContext
    structured_store: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    knowledge: KnowledgeContext = field(default_factory=KnowledgeContext)
    dynamic_store: DynamicStoreContext = field(default_factory=DynamicStoreContext)
    related: RelatedEntities = field(default_factory=RelatedEntities)
    degraded_sources: List[str] = field(default_factory=list)


# Field-name to value map; shape set by the entity's config
GeneratedMetadata = Dict[str, Any]


# =============================================================================
# RELATIONSHIPS AND DOCUMENTS
# =============================================================================

@dataclass
class RelationshipSuggestion:
    """A proposed edge from the entity being prepared to another entity."""
    type: str
    target_id: str
    target_type: str = ""
    confidence: float = 0.0
    reasoning: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple:
        return (self.type, self.target_id)

    def to_dict(self) -> Dict[str, Any]:
        """Brain wire format."""
        return {
            'type': self.type,
            'target': self.target_id,
            'targetType': self.target_type,
            'properties': dict(self.properties),
            'confidence': self.confidence,
            'reasoning': self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RelationshipSuggestion':
        return cls(
            type=data.get('type', ""),
            target_id=str(data.get('target') or data.get('targetId') or ""),
            target_type=data.get('targetType', ""),
            confidence=float(data.get('confidence', 0.0)),
            reasoning=data.get('reasoning', ""),
            properties=dict(data.get('properties') or {}),
        )


@dataclass
class EnrichedDocument:
    """The single persisted output of a successful request."""
    id: str
    type: str
    project_id: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    relationships: List[RelationshipSuggestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'project_id': self.project_id,
            'text': self.text,
            'metadata': self.metadata,
            'relationships': [r.to_dict() for r in self.relationships],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EnrichedDocument':
        return cls(
            id=data['id'],
            type=data['type'],
            project_id=data['project_id'],
            text=data.get('text', ""),
            metadata=dict(data.get('metadata') or {}),
            relationships=[
                RelationshipSuggestion.from_dict(r) for r in data.get('relationships', [])
            ],
        )


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ProcessingMetrics:
    """Per-request numbers; logged, never persisted."""
    project_id: str
    entity_type: str
    duration: float = 0.0
    cache_hit: bool = False
    tokens_used: int = 0
    metadata_fields: int = 0
    relationships: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
