"""
CMS Lifecycle Hooks

Adapts collection lifecycle events (before/after change, after delete) to the
interceptor so every CMS write is mirrored into the knowledge store.

- before_change runs phase one before the CMS write, so a record that cannot be
  prepared is rejected before it is saved
- after_change commits (or queues) the write; failure fails the CMS write
- after_delete removes the node; failures are logged only
- compensate undoes a commit when the CMS transaction rolls back afterwards
"""

from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from brainprep.core.constants import HOOK_BYPASS_COLLECTIONS, CreatedByType
from brainprep.core.exceptions import HookSyncError
from brainprep.core.logging_config import get_logger
from brainprep.core.models import PrepareOptions
from brainprep.integration.interceptor import BrainServiceInterceptor, PreparedWrite, StoreAck

logger = get_logger("integration.hooks")

# Commits remembered for compensate()
MAX_TRACKED_COMMITS = 1000


@dataclass
class HookConfig:
    enabled: bool = True
    project_id_field: str = 'project'
    async_mode: bool = False
    bypass_collections: List[str] = field(default_factory=lambda: list(HOOK_BYPASS_COLLECTIONS))
    # Collection slug to entity type; unmapped slugs drop a trailing 's'
    entity_types: Dict[str, str] = field(default_factory=dict)

    def entity_type_for(self, collection: str) -> str:
        if collection in self.entity_types:
            return self.entity_types[collection]
        return collection[:-1] if collection.endswith('s') else collection


def project_id_of(doc: Dict[str, Any], field_name: str) -> Optional[str]:
    """Project id from the configured field (a value or a relation object), else the doc's id."""
    value = doc.get(field_name) or doc.get('id')
    if isinstance(value, dict):
        value = value.get('id')
    return str(value) if value else None


class HookAdapter:
    """
    Collection lifecycle hooks backed by a BrainServiceInterceptor.

    Usage:
        hooks = project_based(interceptor)
        await hooks.before_change(doc, 'characters', 'create')
        doc = await hooks.after_change(doc, 'characters', 'create', user_id='u1')
    """

    def __init__(self, interceptor: BrainServiceInterceptor, config: Optional[HookConfig] = None):
        self.interceptor = interceptor
        self.config = config or HookConfig()
        self._prepared: Dict[Tuple[str, str], PreparedWrite] = {}
        self._commits: "OrderedDict[Tuple[str, str], StoreAck]" = OrderedDict()

    def _skip(self, collection: str, operation: str = "") -> bool:
        if not self.config.enabled or operation == 'read':
            return True
        if collection in self.config.bypass_collections:
            logger.debug(f"Bypassing collection: {collection}")
            return True
        return False

    def _options(self, doc: Dict[str, Any], collection: str,
                 user_id: Optional[str]) -> Optional[PrepareOptions]:
        project_id = project_id_of(doc, self.config.project_id_field)
        if not project_id:
            logger.warning(f"No project ID found for {collection}:{doc.get('id')}")
            return None
        return PrepareOptions(
            project_id=project_id,
            entity_type=self.config.entity_type_for(collection),
            source_collection=collection,
            source_id=str(doc['id']) if doc.get('id') is not None else None,
            user_id=user_id,
            created_by_type=CreatedByType.USER,
        )

    # =========================================================================
    # HOOKS
    # =========================================================================

    async def before_change(self, doc: Dict[str, Any], collection: str, operation: str,
                            user_id: Optional[str] = None) -> Dict[str, Any]:
        """Prepare ahead of the CMS write; raises HookSyncError when preparation fails."""
        if self._skip(collection, operation) or self.config.async_mode:
            return doc
        options = self._options(doc, collection, user_id)
        if options is None:
            return doc

        try:
            prepared = await self.interceptor.prepare_write(doc, options)
        except Exception as e:
            logger.error(f"Error preparing {collection}:{doc.get('id')}: {e}")
            raise HookSyncError(collection, str(doc.get('id')), str(e)) from e

        # New records get their id from the CMS write, so only updates can be matched later
        if doc.get('id') is not None:
            self._prepared[(collection, str(doc['id']))] = prepared
        return doc

    async def after_change(self, doc: Dict[str, Any], collection: str, operation: str,
                           user_id: Optional[str] = None) -> Dict[str, Any]:
        """Commit or queue the write; raises HookSyncError on failure."""
        if self._skip(collection, operation):
            return doc
        options = self._options(doc, collection, user_id)
        if options is None:
            return doc

        doc_id = str(doc.get('id'))
        key = (collection, doc_id)
        try:
            if self.config.async_mode:
                job_id = await self.interceptor.store_async(doc, options)
                logger.info(f"Queued {collection}:{doc_id} (Job: {job_id})")
                return doc

            prepared = self._prepared.pop(key, None)
            if prepared is None:
                prepared = await self.interceptor.prepare_write(doc, options)
            ack = await self.interceptor.commit(prepared)
        except Exception as e:
            logger.error(f"Error syncing {collection}:{doc_id}: {e}")
            raise HookSyncError(collection, doc_id, str(e)) from e

        self._remember(key, ack)
        logger.info(f"Synced {collection}:{doc_id}")
        return doc

    async def after_delete(self, doc: Dict[str, Any], collection: str) -> Dict[str, Any]:
        """Remove the node and cached document; failures never block the delete."""
        if self._skip(collection):
            return doc
        options = self._options(doc, collection, None)
        if options is None:
            return doc

        try:
            await self.interceptor.delete(doc, options)
            logger.info(f"Deleted {collection}:{doc.get('id')} from brain")
        except Exception as e:
            logger.error(f"Error deleting {collection}:{doc.get('id')}: {e}")
        return doc

    async def compensate(self, collection: str, doc: Dict[str, Any]) -> bool:
        """Undo the last commit for a record. Returns False when nothing was committed."""
        ack = self._commits.pop((collection, str(doc.get('id'))), None)
        if ack is None:
            return False
        try:
            await self.interceptor.rollback(ack)
        except Exception as e:
            raise HookSyncError(collection, str(doc.get('id')), f"rollback failed: {e}") from e
        return True

    def _remember(self, key: Tuple[str, str], ack: StoreAck) -> None:
        self._commits[key] = ack
        self._commits.move_to_end(key)
        while len(self._commits) > MAX_TRACKED_COMMITS:
            self._commits.popitem(last=False)


# =============================================================================
# PRESETS
# =============================================================================

def project_based(interceptor: BrainServiceInterceptor, config: Optional[HookConfig] = None) -> HookAdapter:
    """Collections that belong to a project through their `project` field."""
    return HookAdapter(interceptor, replace(config or HookConfig(), project_id_field='project'))


def project(interceptor: BrainServiceInterceptor, config: Optional[HookConfig] = None) -> HookAdapter:
    """The projects collection itself: the record's own id is the project id."""
    return HookAdapter(interceptor, replace(config or HookConfig(), project_id_field='id'))


def queued(interceptor: BrainServiceInterceptor, config: Optional[HookConfig] = None) -> HookAdapter:
    return HookAdapter(interceptor, replace(config or HookConfig(), async_mode=True))


def custom(interceptor: BrainServiceInterceptor, config: HookConfig) -> HookAdapter:
    return HookAdapter(interceptor, config)
