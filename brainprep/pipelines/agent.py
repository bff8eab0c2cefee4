"""
Brainprep Data Preparation Agent

Runs one entity through the preparation stages:

    ValidateInput -> CacheCheck -> GatherContext -> GenerateMetadata -> Enrich
    -> [DiscoverRelationships] -> BuildDocument -> [Validate] -> [CacheStore]

Bracketed stages are controlled by feature flags (global, overridable per
entity config). Any stage failure aborts the request; nothing is cached or
returned for a failed request.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from brainprep.cache.cache_manager import CacheManager, document_key
from brainprep.config.registry import ConfigRegistry
from brainprep.core.config import PrepConfig
from brainprep.core.constants import (
    JOB_PREPARE_BATCH,
    JOB_PREPARE_DATA,
    LINEAGE_SOURCE,
    LINEAGE_VERSION,
)
from brainprep.core.exceptions import (
    DocumentValidationError,
    InputValidationError,
    PipelineTimeoutError,
    QueueDisabledError,
    QueueError,
)
from brainprep.core.logging_config import get_logger
from brainprep.core.models import (
    EnrichedDocument,
    PrepareOptions,
    ProcessingMetrics,
    RawEntity,
    RelationshipSuggestion,
    build_document_id,
    parse_raw_entity,
)
from brainprep.llm.client import TokenUsage
from brainprep.queue.queue_manager import QueueJob, QueueManager
from brainprep.pipelines.context_gatherer import ContextGatherer
from brainprep.pipelines.data_enricher import DataEnricher, EnrichedRepresentation
from brainprep.pipelines.metadata_generator import MetadataGenerator
from brainprep.pipelines.relationship_discoverer import RelationshipDiscoverer
from brainprep.pipelines.validator import DocumentValidator

logger = get_logger("pipelines.agent")

RawInput = Union[RawEntity, Dict[str, Any]]
JobHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class PrepStage(Enum):
    """Stages of a preparation request."""
    VALIDATE_INPUT = "validate_input"
    CACHE_CHECK = "cache_check"
    GATHER_CONTEXT = "gather_context"
    GENERATE_METADATA = "generate_metadata"
    ENRICH = "enrich"
    DISCOVER_RELATIONSHIPS = "discover_relationships"
    BUILD_DOCUMENT = "build_document"
    VALIDATE = "validate"
    CACHE_STORE = "cache_store"
    DONE = "done"


@dataclass
class PrepareRequest:
    """One item of a batch."""
    raw: RawInput
    options: PrepareOptions


@dataclass
class BatchItemResult:
    """Outcome of one batch item, in input order."""
    index: int
    document: Optional[EnrichedDocument] = None
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.document is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'success': self.success,
            'document': self.document.to_dict() if self.document else None,
            'error': str(self.error) if self.error else None,
        }


@dataclass
class _RequestState:
    metrics: ProcessingMetrics
    stage: PrepStage = PrepStage.VALIDATE_INPUT
    usage: Optional[TokenUsage] = None


def _as_request(item: Union[PrepareRequest, Tuple[RawInput, PrepareOptions]]) -> PrepareRequest:
    if isinstance(item, PrepareRequest):
        return item
    raw, options = item
    return PrepareRequest(raw=raw, options=options)


def _raw_payload(raw: RawInput) -> Dict[str, Any]:
    return raw.to_dict() if isinstance(raw, RawEntity) else dict(raw)


class DataPreparationAgent:
    """
    Orchestrates preparation of entities for the knowledge store.

    Features:
    - Cache read-through and write-through under the document key
    - Per-entity feature flags for relationships, validation, caching and queueing
    - Optional per-request deadline covering the whole pipeline
    - Bounded-concurrency batches with per-item isolation
    - Deferred preparation through the queue
    """

    def __init__(
        self,
        registry: ConfigRegistry,
        gatherer: ContextGatherer,
        metadata_generator: MetadataGenerator,
        relationship_discoverer: RelationshipDiscoverer,
        enricher: Optional[DataEnricher] = None,
        validator: Optional[DocumentValidator] = None,
        cache: Optional[CacheManager] = None,
        queue: Optional[QueueManager] = None,
        config: Optional[PrepConfig] = None,
    ):
        self.registry = registry
        self.gatherer = gatherer
        self.metadata_generator = metadata_generator
        self.relationship_discoverer = relationship_discoverer
        self.enricher = enricher or DataEnricher()
        self.validator = validator or DocumentValidator(registry.validators)
        self.cache = cache
        self.queue = queue
        self.config = config or PrepConfig()

        self._job_handlers: Dict[str, JobHandler] = {
            JOB_PREPARE_DATA: self._handle_prepare_job,
            JOB_PREPARE_BATCH: self._handle_batch_job,
        }

    # =========================================================================
    # SYNCHRONOUS PREPARATION
    # =========================================================================

    async def prepare(self, raw: RawInput, options: PrepareOptions) -> EnrichedDocument:
        """
        Prepare one entity.

        Raises:
            InputValidationError: project_id or entity_type missing
            MetadataGenerationError: a required metadata field could not be derived
            DocumentValidationError: a blocking validation rule failed
            PipelineTimeoutError: options.deadline_seconds elapsed
        """
        state = _RequestState(
            metrics=ProcessingMetrics(project_id=options.project_id, entity_type=options.entity_type),
            usage=TokenUsage(),
        )
        start = time.monotonic()
        try:
            if options.deadline_seconds is None:
                return await self._run(raw, options, state)
            try:
                return await asyncio.wait_for(self._run(raw, options, state), options.deadline_seconds)
            except asyncio.TimeoutError:
                raise PipelineTimeoutError(options.deadline_seconds, state.stage.value)
        except Exception as e:
            state.metrics.errors.append(f"{type(e).__name__}: {e}")
            logger.error(f"Preparation failed at {state.stage.value} for "
                         f"{options.entity_type} in {options.project_id}: {e}")
            raise
        finally:
            state.metrics.duration = round(time.monotonic() - start, 3)
            state.metrics.tokens_used = state.usage.total
            logger.info(f"Processing metrics: {state.metrics.to_dict()}")

    async def _run(self, raw: RawInput, options: PrepareOptions,
                   state: _RequestState) -> EnrichedDocument:
        state.stage = PrepStage.VALIDATE_INPUT
        self._validate_input(raw, options)
        entity_type = options.entity_type
        project_id = options.project_id
        entity = parse_raw_entity(raw, entity_type)
        config = self.registry.get_or_default(entity_type)
        entity_id = entity.entity_id()
        cache_key = document_key(project_id, entity_type, entity_id)
        caching = self.cache is not None and self.registry.is_feature_enabled(entity_type, 'enable_caching')

        state.stage = PrepStage.CACHE_CHECK
        if caching and not options.skip_cache:
            cached = await self.cache.get(cache_key)
            if cached:
                state.metrics.cache_hit = True
                logger.debug(f"Cache hit: {cache_key}")
                return EnrichedDocument.from_dict(cached)

        state.stage = PrepStage.GATHER_CONTEXT
        context = await self.gatherer.gather_all(entity, project_id, config.context_sources, entity_type)

        state.stage = PrepStage.GENERATE_METADATA
        metadata = await self.metadata_generator.generate(entity, context, entity_type, state.usage)
        state.metrics.metadata_fields = len(metadata)

        state.stage = PrepStage.ENRICH
        enriched = self.enricher.enrich(entity, context, metadata)

        relationships: List[RelationshipSuggestion] = []
        if self.registry.is_feature_enabled(entity_type, 'enable_relationship_discovery'):
            state.stage = PrepStage.DISCOVER_RELATIONSHIPS
            relationships = await self.relationship_discoverer.discover(
                enriched.text, context, project_id,
                entity_type=entity_type, raw_entity=entity, usage=state.usage,
            )
            enriched.quality_score = self.enricher.score(enriched, relationships)
        state.metrics.relationships = len(relationships)

        state.stage = PrepStage.BUILD_DOCUMENT
        document = self._build_document(
            build_document_id(entity_type, entity_id, project_id),
            entity, enriched, relationships, options,
        )

        if self.registry.is_feature_enabled(entity_type, 'enable_validation'):
            state.stage = PrepStage.VALIDATE
            result = self.validator.validate(document, config, entity.to_dict())
            if not result.valid:
                raise DocumentValidationError(result.errors, result.warnings)
            if result.warnings:
                logger.warning(f"Validation warnings for {document.id}: {result.warnings}")

        if caching:
            state.stage = PrepStage.CACHE_STORE
            await self.cache.set(cache_key, document.to_dict(), self.config.cache.document_ttl)

        state.stage = PrepStage.DONE
        logger.info(f"Prepared {document.id} (quality {enriched.quality_score})")
        return document

    def _validate_input(self, raw: RawInput, options: PrepareOptions) -> None:
        if not options.project_id:
            raise InputValidationError("project_id")
        if not options.entity_type:
            raise InputValidationError("entity_type")
        if raw is None:
            raise InputValidationError("raw entity")

    def _build_document(
        self,
        document_id: str,
        entity: RawEntity,
        enriched: EnrichedRepresentation,
        relationships: List[RelationshipSuggestion],
        options: PrepareOptions,
    ) -> EnrichedDocument:
        metadata = dict(enriched.metadata)
        metadata.update({
            'name': entity.name,
            'relatedEntities': enriched.related_entities,
            'sourceCollection': options.source_collection,
            'sourceId': options.source_id or entity.id,
            'createdBy': options.user_id,
            'createdByType': options.created_by_type.value,
            'qualityScore': enriched.quality_score,
            'contextSummary': enriched.context_summary,
            'dataLineage': {
                'source': LINEAGE_SOURCE,
                'processedAt': datetime.now(timezone.utc).isoformat(),
                'version': LINEAGE_VERSION,
            },
        })
        return EnrichedDocument(
            id=document_id,
            type=options.entity_type,
            project_id=options.project_id,
            text=enriched.text,
            metadata=metadata,
            relationships=list(relationships),
        )

    # =========================================================================
    # BATCH
    # =========================================================================

    async def prepare_batch(
        self,
        items: Sequence[Union[PrepareRequest, Tuple[RawInput, PrepareOptions]]],
    ) -> List[BatchItemResult]:
        """Prepare many entities concurrently; one result per item, in input order."""
        requests = [_as_request(item) for item in items]
        semaphore = asyncio.Semaphore(max(1, self.config.batch_concurrency))

        async def run(request: PrepareRequest) -> EnrichedDocument:
            async with semaphore:
                return await self.prepare(request.raw, request.options)

        outcomes = await asyncio.gather(*(run(r) for r in requests), return_exceptions=True)

        results = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                results.append(BatchItemResult(index=index, error=outcome))
            else:
                results.append(BatchItemResult(index=index, document=outcome))

        failed = sum(1 for r in results if not r.success)
        logger.info(f"Batch prepared: {len(results) - failed}/{len(results)} succeeded")
        return results

    # =========================================================================
    # QUEUE
    # =========================================================================

    def _queue_enabled(self, entity_type: str) -> bool:
        return self.queue is not None and self.registry.is_feature_enabled(entity_type, 'enable_queue')

    def register_job_handler(self, job_name: str, handler: JobHandler) -> None:
        """Route queued jobs named `job_name` to `handler(payload)`."""
        self._job_handlers[job_name] = handler

    async def enqueue(self, job_name: str, payload: Dict[str, Any], entity_type: str = "") -> str:
        if not self._queue_enabled(entity_type):
            raise QueueDisabledError()
        if not self.queue.is_running:
            self.queue.start_worker(self._process_job)
        return await self.queue.add(job_name, payload)

    async def prepare_async(self, raw: RawInput, options: PrepareOptions) -> str:
        """Queue one entity for preparation; returns the job id."""
        self._validate_input(raw, options)
        payload = {'raw': _raw_payload(raw), 'options': options.to_dict()}
        return await self.enqueue(JOB_PREPARE_DATA, payload, options.entity_type)

    async def prepare_batch_async(
        self,
        items: Sequence[Union[PrepareRequest, Tuple[RawInput, PrepareOptions]]],
    ) -> str:
        """Queue a whole batch as one job; returns the job id."""
        requests = [_as_request(item) for item in items]
        payload = {
            'items': [
                {'raw': _raw_payload(r.raw), 'options': r.options.to_dict()}
                for r in requests
            ]
        }
        entity_type = requests[0].options.entity_type if requests else ""
        return await self.enqueue(JOB_PREPARE_BATCH, payload, entity_type)

    def get_job(self, job_id: str) -> Optional[QueueJob]:
        if self.queue is None:
            return None
        return self.queue.get_job(job_id)

    async def _process_job(self, job: QueueJob) -> Any:
        handler = self._job_handlers.get(job.name)
        if handler is None:
            raise QueueError(f"No handler for job type: {job.name}")
        return await handler(job.payload)

    async def _handle_prepare_job(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        options = PrepareOptions.from_dict(payload['options'])
        document = await self.prepare(payload['raw'], options)
        return document.to_dict()

    async def _handle_batch_job(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        items = [
            PrepareRequest(raw=item['raw'], options=PrepareOptions.from_dict(item['options']))
            for item in payload['items']
        ]
        return [result.to_dict() for result in await self.prepare_batch(items)]

    async def close(self) -> None:
        if self.queue is not None:
            await self.queue.close()
        if self.cache is not None:
            await self.cache.close()
