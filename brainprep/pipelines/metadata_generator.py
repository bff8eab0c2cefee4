"""
Brainprep Metadata Generator

Produces the metadata block of a document from the entity's config. Fields
flagged `use_llm` are requested in a single structured LLM call per entity; the
response is validated against a pydantic model generated from the field specs.
Anything the LLM cannot provide is filled from the raw entity or the configured
default.
"""

import copy
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError, create_model

from brainprep.config.registry import ConfigRegistry
from brainprep.config.templates import TemplateValues
from brainprep.config.types import EntityConfig, FieldType, MetadataFieldSpec
from brainprep.core.constants import FALLBACK_SUMMARY_MAX_CHARS
from brainprep.core.exceptions import LLMResponseError, MetadataGenerationError
from brainprep.core.logging_config import get_logger
from brainprep.core.models import GatheredContext, GeneratedMetadata, RawEntity
from brainprep.llm.client import BaseLLMClient, TokenUsage
from brainprep.pipelines.context_gatherer import describe_context

logger = get_logger("pipelines.metadata")

LLM_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.4

# Keys the generator adds to every metadata block
BOOKKEEPING_FIELDS = ('generatedAt', 'generationMode', 'confidence')

_PYTHON_TYPES = {
    FieldType.STRING: str,
    FieldType.NUMBER: float,
    FieldType.BOOLEAN: bool,
    FieldType.ARRAY: List[Any],
    FieldType.OBJECT: Dict[str, Any],
    FieldType.ENUM: str,
}


def build_output_model(config: EntityConfig) -> Type[BaseModel]:
    """Pydantic model for the LLM response; every field optional, plus `summary`."""
    definitions = {
        spec.name: (Optional[_PYTHON_TYPES[spec.field_type]], None)
        for spec in config.llm_fields()
    }
    definitions.setdefault('summary', (Optional[str], None))
    model_name = config.type.title().replace('_', '').replace('-', '') + "Metadata"
    return create_model(model_name, **definitions)


def describe_fields(specs: List[MetadataFieldSpec]) -> str:
    lines = []
    for spec in specs:
        kind = spec.field_type.value
        if spec.field_type == FieldType.ENUM and spec.enum_values:
            kind += ": " + ", ".join(spec.enum_values)
        line = f"- {spec.name} ({kind})"
        if spec.required:
            line += " [required]"
        line += f": {spec.llm_prompt or spec.description}"
        lines.append(line)
    lines.append("- summary (string): Concise summary of the entity (2-3 sentences).")
    return "\n".join(lines)


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _plain(value: Any) -> Any:
    """Relation objects in raw fields are reduced to their ids."""
    if isinstance(value, list):
        return [v.get('id', v) if isinstance(v, dict) else v for v in value]
    return value


class MetadataGenerator:
    """
    Config-driven metadata generation.

    Features:
    - One LLM call per entity, validated against a generated pydantic model
    - Field-by-field fallback to raw values and configured defaults
    - Invalid enum values replaced by the field default
    - Required fields that cannot be derived raise MetadataGenerationError
    """

    def __init__(self, llm: Optional[BaseLLMClient], registry: ConfigRegistry):
        self.llm = llm
        self.registry = registry

    async def generate(
        self,
        raw: RawEntity,
        context: GatheredContext,
        entity_type: str,
        usage: Optional[TokenUsage] = None,
    ) -> GeneratedMetadata:
        config = self.registry.get_or_default(entity_type)

        llm_values: Dict[str, Any] = {}
        mode = 'fallback'
        if self.llm is not None and config.enrichment_strategy.use_llm:
            try:
                llm_values = await self._generate_with_llm(raw, context, config, usage)
                mode = 'llm'
            except Exception as e:
                error = MetadataGenerationError(
                    f"LLM metadata generation failed for {entity_type}, using fallback",
                    {"reason": str(e)},
                )
                logger.warning(str(error))

        metadata = self._assemble(raw, config, llm_values)
        metadata['generatedAt'] = datetime.now(timezone.utc).isoformat()
        metadata['generationMode'] = mode
        metadata['confidence'] = LLM_CONFIDENCE if mode == 'llm' else FALLBACK_CONFIDENCE
        return metadata

    async def _generate_with_llm(
        self,
        raw: RawEntity,
        context: GatheredContext,
        config: EntityConfig,
        usage: Optional[TokenUsage],
    ) -> Dict[str, Any]:
        output_model = build_output_model(config)
        project = context.project
        values = TemplateValues(
            entity_type=config.type,
            entity_name=raw.name,
            entity_text=raw.text,
            entity_data=json.dumps(raw.to_dict(), indent=2, default=str),
            project_name=project.name,
            project_type=project.type or "unspecified",
            project_genre=", ".join(project.genre) or "unspecified",
            project_themes=", ".join(project.themes) or "unspecified",
            project_tone=project.tone or "unspecified",
            context_summary=describe_context(context),
            field_specs=describe_fields(config.llm_fields()),
        )

        result = await self.llm.execute(
            config.prompts.metadata.render(values),
            schema=output_model.model_json_schema(),
            system_prompt=config.prompts.system_prompt,
        )
        if usage is not None:
            usage.add(result)

        if not isinstance(result.structured, dict):
            raise LLMResponseError(
                "Metadata response is not a JSON object",
                {"type": type(result.structured).__name__},
            )
        try:
            validated = output_model.model_validate(result.structured)
        except ValidationError as e:
            raise LLMResponseError("Metadata response failed validation",
                                   {"errors": e.error_count()})
        return validated.model_dump()

    def _assemble(self, raw: RawEntity, config: EntityConfig,
                  llm_values: Dict[str, Any]) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {}
        missing = []

        for spec in config.metadata_fields:
            value = self._resolve(spec, raw, llm_values)
            if _is_missing(value):
                if spec.required:
                    missing.append(spec.name)
                continue
            metadata[spec.name] = value

        if missing:
            raise MetadataGenerationError(
                f"Required metadata for {config.type} could not be derived: {', '.join(missing)}",
                {"entity_type": config.type, "fields": missing},
            )

        if _is_missing(metadata.get('summary')):
            llm_summary = llm_values.get('summary')
            if not _is_missing(llm_summary):
                metadata['summary'] = llm_summary
            else:
                fallback = raw.get('summary') or raw.text
                if fallback:
                    metadata['summary'] = str(fallback)[:FALLBACK_SUMMARY_MAX_CHARS]
        return metadata

    def _resolve(self, spec: MetadataFieldSpec, raw: RawEntity,
                 llm_values: Dict[str, Any]) -> Any:
        """LLM value, then raw field, then configured default."""
        if spec.use_llm:
            value = llm_values.get(spec.name)
            if not _is_missing(value):
                if spec.field_type == FieldType.ENUM and value not in spec.enum_values:
                    logger.debug(f"Invalid {spec.name} value {value!r}, using default")
                    return copy.deepcopy(spec.default)
                return value

        value = _plain(raw.get(spec.source_field or spec.name))
        if not _is_missing(value):
            return value
        return copy.deepcopy(spec.default)
