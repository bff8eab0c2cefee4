"""
Tests for the brain service interceptor.

Tests for brainprep/integration/interceptor.py
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from brainprep.cache.cache_manager import document_key
from brainprep.core.exceptions import StorageError
from brainprep.core.models import PrepareOptions
from brainprep.integration.interceptor import BrainServiceInterceptor, PreparedWrite, raw_node
from brainprep.queue.queue_manager import JobStatus


@pytest.fixture
def interceptor(agent, knowledge_store) -> BrainServiceInterceptor:
    return BrainServiceInterceptor(agent, knowledge_store)


@pytest.fixture
def user_options() -> PrepareOptions:
    return PrepareOptions(project_id="proj_x", entity_type="user", source_collection="users")


USER = {"id": "u1", "name": "Jafar", "email": "jafar@example.com"}


class TestRawNode:
    """Tests for bypass nodes."""

    def test_raw_node_shape(self, user_options):
        node = raw_node(USER, user_options)

        assert node["id"] == "user_u1_proj_x"
        assert node["text"] == "Jafar"
        assert node["metadata"]["email"] == "jafar@example.com"
        assert node["metadata"]["bypassed"] is True
        assert node["relationships"] == []

    def test_raw_node_without_text_uses_json(self):
        node = raw_node({"id": "m1"}, PrepareOptions(project_id="p1", source_collection="media"))

        assert node["type"] == "media"
        assert '"id": "m1"' in node["text"]


class TestBypass:
    """Tests for bypassed collections."""

    @pytest.mark.asyncio
    async def test_bypass_never_calls_agent(self, interceptor, knowledge_store, user_options):
        interceptor.agent.prepare = AsyncMock()

        ack = await interceptor.store(USER, user_options)

        interceptor.agent.prepare.assert_not_called()
        assert ack.bypassed is True
        assert knowledge_store.nodes["user_u1_proj_x"]["metadata"]["bypassed"] is True

    def test_custom_bypass_list(self, agent, knowledge_store):
        interceptor = BrainServiceInterceptor(agent, knowledge_store, bypass_collections=["media"])

        assert interceptor.is_bypassed(PrepareOptions(source_collection="media"))
        assert not interceptor.is_bypassed(PrepareOptions(source_collection="users"))
        assert not interceptor.is_bypassed(PrepareOptions())


class TestTwoPhaseWrite:
    """Tests for prepare_write / commit / rollback."""

    @pytest.mark.asyncio
    async def test_prepare_write_does_not_touch_store(self, interceptor, knowledge_store,
                                                      aladdin, character_options):
        prepared = await interceptor.prepare_write(aladdin, character_options)

        assert prepared.node_id == "character_char_1_proj_x"
        assert prepared.document is not None
        assert knowledge_store.nodes == {}

    @pytest.mark.asyncio
    async def test_store_writes_enriched_node(self, interceptor, knowledge_store, aladdin, character_options):
        ack = await interceptor.store(aladdin, character_options)

        node = knowledge_store.nodes["character_char_1_proj_x"]
        assert ack.previous is None
        assert ack.to_dict()["replaced"] is False
        assert node["metadata"]["dataLineage"]["source"] == "data-preparation-agent"

    @pytest.mark.asyncio
    async def test_rollback_new_node_deletes(self, interceptor, knowledge_store, aladdin, character_options):
        ack = await interceptor.store(aladdin, character_options)

        await interceptor.rollback(ack)

        assert "character_char_1_proj_x" not in knowledge_store.nodes

    @pytest.mark.asyncio
    async def test_rollback_restores_previous(self, interceptor, knowledge_store, aladdin, character_options):
        original = {"id": "character_char_1_proj_x", "text": "old version"}
        await knowledge_store.add_node(original)

        ack = await interceptor.store(aladdin, character_options)
        assert ack.previous == original

        await interceptor.rollback(ack)

        assert knowledge_store.nodes["character_char_1_proj_x"]["text"] == "old version"

    @pytest.mark.asyncio
    async def test_commit_failure_wrapped(self, agent):
        store = MagicMock()
        store.get_node = AsyncMock(return_value=None)
        store.add_node = AsyncMock(side_effect=RuntimeError("disk full"))
        interceptor = BrainServiceInterceptor(agent, store)

        with pytest.raises(StorageError) as exc_info:
            await interceptor.commit(PreparedWrite(node={"id": "n1"}))

        assert exc_info.value.details["node_id"] == "n1"


class TestStoreBatch:
    """Tests for batch writes."""

    @pytest.mark.asyncio
    async def test_outcomes_in_input_order(self, interceptor, knowledge_store, aladdin,
                                           character_options, user_options):
        short = {"id": "char_9", "name": "Abu", "description": "A monkey"}
        items = [
            (USER, user_options),
            (aladdin, character_options),
            (short, character_options),
        ]

        outcomes = await interceptor.store_batch(items)

        assert [o.index for o in outcomes] == [0, 1, 2]
        assert [o.success for o in outcomes] == [True, True, False]
        assert outcomes[0].ack.bypassed is True
        assert outcomes[1].ack.node_id == "character_char_1_proj_x"
        assert "character_char_9_proj_x" not in knowledge_store.nodes


class TestQueuedStore:
    """Tests for store_async."""

    @pytest.mark.asyncio
    async def test_store_async_writes_node(self, interceptor, queue, knowledge_store,
                                           aladdin, character_options):
        job_id = await interceptor.store_async(aladdin, character_options)
        job = await queue.wait_for(job_id, timeout=5)
        await interceptor.agent.close()

        assert job.status == JobStatus.COMPLETED
        assert job.result["id"] == "character_char_1_proj_x"
        assert "character_char_1_proj_x" in knowledge_store.nodes


class TestDeleteAndQueries:
    """Tests for delete, search and get_node."""

    @pytest.mark.asyncio
    async def test_delete_removes_node_and_cache(self, interceptor, cache, aladdin, character_options):
        await interceptor.store(aladdin, character_options)

        assert await interceptor.delete(aladdin, character_options) is True
        assert await interceptor.get_node("character_char_1_proj_x") is None
        assert await cache.get(document_key("proj_x", "character", "char_1")) is None

    @pytest.mark.asyncio
    async def test_delete_missing(self, interceptor, character_options):
        assert await interceptor.delete({"id": "ghost"}, character_options) is False

    @pytest.mark.asyncio
    async def test_search(self, interceptor, aladdin, character_options):
        await interceptor.store(aladdin, character_options)

        results = await interceptor.search("Aladdin thief", project_id="proj_x")

        assert results[0]["id"] == "character_char_1_proj_x"
