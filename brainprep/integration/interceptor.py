"""
Brain Service Interceptor

Every write to the knowledge store goes through here. A write has two phases:
prepare_write() runs the preparation agent and builds the node without touching
the store, commit() writes it. commit() remembers the node it replaced so that
rollback() can undo the write when the caller's own transaction fails later.

Collections in the bypass list skip the agent and are written as-is.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from brainprep.cache.cache_manager import document_key
from brainprep.core.constants import INTERCEPTOR_BYPASS_COLLECTIONS, JOB_STORE_DATA
from brainprep.core.exceptions import StorageError
from brainprep.core.logging_config import get_logger
from brainprep.core.models import (
    EnrichedDocument,
    PrepareOptions,
    RawEntity,
    build_document_id,
    parse_raw_entity,
)
from brainprep.pipelines.agent import DataPreparationAgent, PrepareRequest, RawInput
from brainprep.stores.knowledge import KnowledgeStore

logger = get_logger("integration.interceptor")


@dataclass
class PreparedWrite:
    """Phase one result: the node to write, not yet written."""
    node: Dict[str, Any]
    collection: Optional[str] = None
    bypassed: bool = False
    document: Optional[EnrichedDocument] = None

    @property
    def node_id(self) -> str:
        return self.node['id']


@dataclass
class StoreAck:
    """Phase two result; carries what rollback needs."""
    node_id: str
    node: Dict[str, Any]
    previous: Optional[Dict[str, Any]] = None
    bypassed: bool = False
    committed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'id': self.node_id,
            'replaced': self.previous is not None,
            'bypassed': self.bypassed,
            'committed_at': self.committed_at.isoformat(),
        }


@dataclass
class StoreOutcome:
    """Per-item result of store_batch, in input order."""
    index: int
    ack: Optional[StoreAck] = None
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.ack is not None


def raw_node(raw: RawInput, options: PrepareOptions) -> Dict[str, Any]:
    """Node for a bypassed write: the raw record with minimal framing."""
    fields = raw.to_dict() if isinstance(raw, RawEntity) else dict(raw)
    entity_type = options.entity_type or options.source_collection or "record"
    entity = parse_raw_entity(fields, entity_type)
    text = "\n\n".join(p for p in (entity.name, entity.text) if p)
    return {
        'id': build_document_id(entity_type, entity.entity_id(), options.project_id),
        'type': entity_type,
        'project_id': options.project_id,
        'text': text or json.dumps(fields, default=str),
        'metadata': {
            **fields,
            'sourceCollection': options.source_collection,
            'sourceId': options.source_id or entity.id,
            'bypassed': True,
        },
        'relationships': [],
    }


class BrainServiceInterceptor:
    """
    Two-phase writes to the knowledge store through the preparation agent.

    Features:
    - prepare_write / commit / rollback for callers with their own transaction
    - Bypass collections written raw, never prepared
    - Batch writes with per-item outcomes
    - Queued writes through the agent's queue
    """

    def __init__(
        self,
        agent: DataPreparationAgent,
        knowledge_store: KnowledgeStore,
        bypass_collections: Optional[Sequence[str]] = None,
    ):
        self.agent = agent
        self.knowledge_store = knowledge_store
        self.bypass_collections = set(
            INTERCEPTOR_BYPASS_COLLECTIONS if bypass_collections is None else bypass_collections
        )
        agent.register_job_handler(JOB_STORE_DATA, self._handle_store_job)

    def is_bypassed(self, options: PrepareOptions) -> bool:
        return bool(options.source_collection) and options.source_collection in self.bypass_collections

    # =========================================================================
    # TWO-PHASE WRITE
    # =========================================================================

    async def prepare_write(self, raw: RawInput, options: PrepareOptions) -> PreparedWrite:
        """Phase one. Runs the agent; the knowledge store is not touched."""
        if self.is_bypassed(options):
            logger.info(f"Bypassing agent for {options.source_collection}")
            return PreparedWrite(node=raw_node(raw, options),
                                 collection=options.source_collection, bypassed=True)

        logger.info(f"Intercepting store for {options.entity_type}")
        document = await self.agent.prepare(raw, options)
        return PreparedWrite(node=document.to_dict(), collection=options.source_collection,
                             document=document)

    async def commit(self, prepared: PreparedWrite) -> StoreAck:
        """Phase two. Raises StorageError when the store rejects the write."""
        node_id = prepared.node_id
        try:
            previous = await self.knowledge_store.get_node(node_id)
            await self.knowledge_store.add_node(prepared.node)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to store node {node_id}: {e}", {"node_id": node_id})

        logger.info(f"Stored {prepared.node.get('type')} node {node_id}")
        return StoreAck(node_id=node_id, node=prepared.node, previous=previous,
                        bypassed=prepared.bypassed)

    async def rollback(self, ack: StoreAck) -> None:
        """Undo a commit: restore the replaced node, or delete a new one."""
        try:
            if ack.previous is not None:
                await self.knowledge_store.add_node(ack.previous)
            else:
                await self.knowledge_store.delete_node(ack.node_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to roll back node {ack.node_id}: {e}", {"node_id": ack.node_id})
        logger.info(f"Rolled back node {ack.node_id}")

    # =========================================================================
    # STORE
    # =========================================================================

    async def store(self, raw: RawInput, options: PrepareOptions) -> StoreAck:
        return await self.commit(await self.prepare_write(raw, options))

    async def store_batch(
        self,
        items: Sequence[Union[PrepareRequest, Tuple[RawInput, PrepareOptions]]],
    ) -> List[StoreOutcome]:
        """Prepare and write many items; one outcome per item, in input order."""
        requests = [item if isinstance(item, PrepareRequest) else PrepareRequest(*item)
                    for item in items]
        logger.info(f"Intercepting batch store for {len(requests)} items")

        prepared: Dict[int, PreparedWrite] = {}
        outcomes: Dict[int, StoreOutcome] = {}

        pipeline_indexes = []
        for index, request in enumerate(requests):
            if self.is_bypassed(request.options):
                prepared[index] = PreparedWrite(
                    node=raw_node(request.raw, request.options),
                    collection=request.options.source_collection,
                    bypassed=True,
                )
            else:
                pipeline_indexes.append(index)

        batch = await self.agent.prepare_batch([requests[i] for i in pipeline_indexes])
        for index, result in zip(pipeline_indexes, batch):
            if result.success:
                prepared[index] = PreparedWrite(
                    node=result.document.to_dict(),
                    collection=requests[index].options.source_collection,
                    document=result.document,
                )
            else:
                outcomes[index] = StoreOutcome(index=index, error=result.error)

        order = sorted(prepared)
        acks = await asyncio.gather(*(self.commit(prepared[i]) for i in order),
                                    return_exceptions=True)
        for index, ack in zip(order, acks):
            if isinstance(ack, BaseException):
                outcomes[index] = StoreOutcome(index=index, error=ack)
            else:
                outcomes[index] = StoreOutcome(index=index, ack=ack)

        return [outcomes[i] for i in range(len(requests))]

    async def store_async(self, raw: RawInput, options: PrepareOptions) -> str:
        """Queue a store; returns the job id."""
        logger.info(f"Queueing store for {options.entity_type}")
        payload = {
            'raw': raw.to_dict() if isinstance(raw, RawEntity) else dict(raw),
            'options': options.to_dict(),
        }
        return await self.agent.enqueue(JOB_STORE_DATA, payload, options.entity_type)

    async def _handle_store_job(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ack = await self.store(payload['raw'], PrepareOptions.from_dict(payload['options']))
        return ack.to_dict()

    async def delete(self, raw: RawInput, options: PrepareOptions) -> bool:
        """Remove an entity's node and its cached document."""
        fields = raw.to_dict() if isinstance(raw, RawEntity) else dict(raw)
        entity = parse_raw_entity(fields, options.entity_type)
        entity_id = entity.entity_id()
        node_id = build_document_id(options.entity_type, entity_id, options.project_id)

        try:
            deleted = await self.knowledge_store.delete_node(node_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete node {node_id}: {e}", {"node_id": node_id})

        if self.agent.cache is not None:
            await self.agent.cache.delete(document_key(options.project_id, options.entity_type, entity_id))
        return deleted

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def search(self, query: str, limit: int = 10,
                     project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self.knowledge_store.search_similar(query, limit=limit, project_id=project_id)

    async def get_node(self, node_id: str) -> Optional[Dict[str, Any]]:
        return await self.knowledge_store.get_node(node_id)
