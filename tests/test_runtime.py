"""
Tests for the composition root.

Tests for brainprep/runtime.py
"""

import pytest
import pytest_asyncio

from brainprep.cache.backends import MemoryCacheBackend, RedisCacheBackend
from brainprep.core.config import PrepConfig
from brainprep.core.exceptions import ConfigurationError, InvalidConfigError, MissingConfigError
from brainprep.core.models import PrepareOptions
from brainprep.llm.client import OpenRouterClient
from brainprep.runtime import PrepRuntime, get_runtime, reset_runtime
from brainprep.stores.knowledge import HttpKnowledgeStore, InMemoryKnowledgeStore


@pytest_asyncio.fixture
async def fresh_runtime():
    await reset_runtime()
    yield
    await reset_runtime()


class TestComponents:
    """Tests for lazily built components."""

    def test_defaults_without_credentials(self):
        runtime = PrepRuntime(PrepConfig())

        assert runtime.llm is None
        assert isinstance(runtime.knowledge_store, InMemoryKnowledgeStore)
        assert isinstance(runtime.cache.backend, MemoryCacheBackend)

    @pytest.mark.asyncio
    async def test_credentials_select_remote_clients(self):
        config = PrepConfig()
        config.llm.api_key = "sk-test"
        config.brain.api_key = "brain-test"
        runtime = PrepRuntime(config)

        assert isinstance(runtime.llm, OpenRouterClient)
        assert isinstance(runtime.knowledge_store, HttpKnowledgeStore)
        await runtime.close()

    def test_redis_backend_when_enabled(self):
        config = PrepConfig()
        config.redis.enabled = True

        assert isinstance(PrepRuntime(config).cache.backend, RedisCacheBackend)

    def test_components_are_shared(self, llm_client):
        runtime = PrepRuntime(PrepConfig(), llm=llm_client)

        assert runtime.agent is runtime.agent
        assert runtime.interceptor.agent is runtime.agent
        assert runtime.agent.cache is runtime.cache
        assert runtime.registry.features is runtime.config.features

    def test_invalid_config_rejected(self):
        config = PrepConfig()
        config.queue.concurrency = 0

        with pytest.raises(InvalidConfigError):
            PrepRuntime(config)


class TestHooks:
    """Tests for hook presets."""

    def test_presets_by_name(self, llm_client):
        runtime = PrepRuntime(PrepConfig(), llm=llm_client)

        assert runtime.hooks().config.project_id_field == 'project'
        assert runtime.hooks('project').config.project_id_field == 'id'
        assert runtime.hooks('queued').config.async_mode is True

    def test_unknown_preset(self, llm_client):
        with pytest.raises(ConfigurationError):
            PrepRuntime(PrepConfig(), llm=llm_client).hooks('nightly')

    def test_custom_requires_config(self, llm_client):
        with pytest.raises(MissingConfigError):
            PrepRuntime(PrepConfig(), llm=llm_client).hooks('custom')


class TestEndToEnd:
    """Tests for a fully wired runtime."""

    @pytest.mark.asyncio
    async def test_store_through_interceptor(self, llm_client, structured_store, dynamic_provider,
                                             aladdin, character_options):
        runtime = PrepRuntime(PrepConfig(), llm=llm_client, structured_store=structured_store,
                              dynamic_provider=dynamic_provider)

        ack = await runtime.interceptor.store(aladdin, character_options)
        node = await runtime.interceptor.get_node(ack.node_id)
        await runtime.close()

        assert node["type"] == "character"
        assert node["metadata"]["dataLineage"]["source"] == "data-preparation-agent"

    @pytest.mark.asyncio
    async def test_bypass_collection_from_config(self, llm_client):
        config = PrepConfig()
        config.bypass_collections = ["media"]
        runtime = PrepRuntime(config, llm=llm_client)

        ack = await runtime.interceptor.store(
            {"id": "m1", "name": "poster.png"},
            PrepareOptions(project_id="proj_x", source_collection="media"),
        )

        assert ack.bypassed is True


class TestDefaultRuntime:
    """Tests for the process-wide runtime."""

    @pytest.mark.asyncio
    async def test_singleton(self, fresh_runtime):
        runtime = get_runtime(PrepConfig())

        assert get_runtime() is runtime

    @pytest.mark.asyncio
    async def test_reset(self, fresh_runtime):
        first = get_runtime(PrepConfig())
        await reset_runtime()

        assert get_runtime(PrepConfig()) is not first
