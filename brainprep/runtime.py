"""
Brainprep Runtime

Composition root. Builds the registry, stores, cache, queue, agent,
interceptor and hooks from a PrepConfig; any collaborator can be passed in
instead. Components are built on first use.
"""

from typing import Optional

from brainprep.cache.backends import CacheBackend, MemoryCacheBackend, RedisCacheBackend
from brainprep.cache.cache_manager import CacheManager
from brainprep.config.registry import ConfigRegistry
from brainprep.core.config import PrepConfig
from brainprep.core.exceptions import ConfigurationError, MissingConfigError
from brainprep.core.logging_config import get_logger, level_from_name, setup_logging
from brainprep.integration import hooks as hook_presets
from brainprep.integration.hooks import HookAdapter, HookConfig
from brainprep.integration.interceptor import BrainServiceInterceptor
from brainprep.llm.client import BaseLLMClient, OpenRouterClient
from brainprep.pipelines.agent import DataPreparationAgent
from brainprep.pipelines.context_gatherer import ContextGatherer
from brainprep.pipelines.metadata_generator import MetadataGenerator
from brainprep.pipelines.relationship_discoverer import RelationshipDiscoverer
from brainprep.pipelines.validator import DocumentValidator
from brainprep.queue.queue_manager import QueueManager
from brainprep.stores.dynamic import DynamicStoreProvider, InMemoryDynamicStoreProvider
from brainprep.stores.knowledge import HttpKnowledgeStore, InMemoryKnowledgeStore, KnowledgeStore
from brainprep.stores.structured import InMemoryStructuredStore, StructuredStore

logger = get_logger("runtime")

HOOK_PRESETS = {
    'project_based': hook_presets.project_based,
    'project': hook_presets.project,
    'queued': hook_presets.queued,
}


class PrepRuntime:
    """
    Wires the pipeline together.

    Without an API key the LLM client is omitted and metadata falls back to
    heuristics; without brain credentials an in-memory knowledge store is used.
    """

    def __init__(
        self,
        config: Optional[PrepConfig] = None,
        llm: Optional[BaseLLMClient] = None,
        knowledge_store: Optional[KnowledgeStore] = None,
        structured_store: Optional[StructuredStore] = None,
        dynamic_provider: Optional[DynamicStoreProvider] = None,
        cache_backend: Optional[CacheBackend] = None,
        registry: Optional[ConfigRegistry] = None,
    ):
        self.config = config or PrepConfig()
        self.config.validate()

        self._llm = llm
        self._llm_resolved = llm is not None
        self._knowledge_store = knowledge_store
        self._structured_store = structured_store
        self._dynamic_provider = dynamic_provider
        self._cache_backend = cache_backend
        self._registry = registry

        self._cache: Optional[CacheManager] = None
        self._queue: Optional[QueueManager] = None
        self._agent: Optional[DataPreparationAgent] = None
        self._interceptor: Optional[BrainServiceInterceptor] = None

    # =========================================================================
    # COMPONENTS
    # =========================================================================

    @property
    def llm(self) -> Optional[BaseLLMClient]:
        if not self._llm_resolved:
            self._llm_resolved = True
            if self.config.llm.api_key:
                self._llm = OpenRouterClient(self.config.llm)
            else:
                logger.warning("No LLM API key configured, metadata will use fallback generation")
        return self._llm

    @property
    def registry(self) -> ConfigRegistry:
        if self._registry is None:
            registry = ConfigRegistry(features=self.config.features)
            for path in self.config.entity_config_paths:
                loaded = registry.load_json(path)
                logger.info(f"Loaded entity configs from {path}: {loaded}")
            self._registry = registry
        return self._registry

    @property
    def knowledge_store(self) -> KnowledgeStore:
        if self._knowledge_store is None:
            if self.config.brain.api_key:
                self._knowledge_store = HttpKnowledgeStore(self.config.brain)
            else:
                logger.warning("Brain service credentials missing, using in-memory knowledge store")
                self._knowledge_store = InMemoryKnowledgeStore()
        return self._knowledge_store

    @property
    def structured_store(self) -> StructuredStore:
        if self._structured_store is None:
            self._structured_store = InMemoryStructuredStore()
        return self._structured_store

    @property
    def dynamic_provider(self) -> DynamicStoreProvider:
        if self._dynamic_provider is None:
            self._dynamic_provider = InMemoryDynamicStoreProvider()
        return self._dynamic_provider

    @property
    def cache(self) -> CacheManager:
        if self._cache is None:
            backend = self._cache_backend
            if backend is None:
                backend = (RedisCacheBackend(self.config.redis.url)
                           if self.config.redis.enabled else MemoryCacheBackend())
            self._cache = CacheManager(backend, self.config.cache)
        return self._cache

    @property
    def queue(self) -> QueueManager:
        if self._queue is None:
            self._queue = QueueManager(self.config.queue)
        return self._queue

    @property
    def agent(self) -> DataPreparationAgent:
        if self._agent is None:
            registry = self.registry
            self._agent = DataPreparationAgent(
                registry=registry,
                gatherer=ContextGatherer(
                    structured_store=self.structured_store,
                    knowledge_store=self.knowledge_store,
                    dynamic_provider=self.dynamic_provider,
                    cache=self.cache,
                    config=self.config,
                ),
                metadata_generator=MetadataGenerator(self.llm, registry),
                relationship_discoverer=RelationshipDiscoverer(self.llm, registry),
                validator=DocumentValidator(registry.validators),
                cache=self.cache,
                queue=self.queue,
                config=self.config,
            )
        return self._agent

    @property
    def interceptor(self) -> BrainServiceInterceptor:
        if self._interceptor is None:
            self._interceptor = BrainServiceInterceptor(
                self.agent, self.knowledge_store, self.config.bypass_collections
            )
        return self._interceptor

    def hooks(self, preset: str = 'project_based', config: Optional[HookConfig] = None) -> HookAdapter:
        """Hook adapter from a preset name; 'custom' requires a config."""
        if preset == 'custom':
            if config is None:
                raise MissingConfigError("Custom hooks require a HookConfig")
            return hook_presets.custom(self.interceptor, config)
        try:
            factory = HOOK_PRESETS[preset]
        except KeyError:
            raise ConfigurationError(f"Unknown hook preset: {preset}")
        return factory(self.interceptor, config)

    async def close(self) -> None:
        if self._queue is not None:
            await self._queue.close()
        if self._cache is not None:
            await self._cache.close()
        if self._knowledge_store is not None:
            await self._knowledge_store.close()
        logger.info("Runtime closed")


# =============================================================================
# DEFAULT RUNTIME
# =============================================================================

_runtime: Optional[PrepRuntime] = None


def get_runtime(config: Optional[PrepConfig] = None) -> PrepRuntime:
    """Process-wide runtime, configured from the environment on first use."""
    global _runtime
    if _runtime is None:
        config = config or PrepConfig.from_settings()
        setup_logging(level=level_from_name(config.log_level))
        _runtime = PrepRuntime(config)
    return _runtime


async def reset_runtime() -> None:
    global _runtime
    if _runtime is not None:
        await _runtime.close()
    _runtime = None
