"""
Pytest Configuration and Fixtures

Shared fixtures for all tests: a scripted LLM, in-memory stores seeded with a
small project, and a fully wired agent.
"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from brainprep.cache.backends import MemoryCacheBackend
from brainprep.cache.cache_manager import CacheManager
from brainprep.config.registry import ConfigRegistry
from brainprep.core.config import PrepConfig
from brainprep.core.models import PrepareOptions
from brainprep.llm.client import CallableLLMClient
from brainprep.pipelines.agent import DataPreparationAgent
from brainprep.pipelines.context_gatherer import ContextGatherer
from brainprep.pipelines.metadata_generator import MetadataGenerator
from brainprep.pipelines.relationship_discoverer import RelationshipDiscoverer
from brainprep.queue.queue_manager import QueueManager
from brainprep.stores.dynamic import InMemoryDynamicStore, InMemoryDynamicStoreProvider
from brainprep.stores.knowledge import InMemoryKnowledgeStore
from brainprep.stores.structured import InMemoryStructuredStore


PROJECT_ID = "proj_x"
PROJECT_SLUG = "aladdin-reimagined"

PROJECT_RECORD = {
    "id": PROJECT_ID,
    "name": "Aladdin Reimagined",
    "slug": PROJECT_SLUG,
    "type": "feature",
    "genre": ["adventure", "fantasy"],
    "themes": ["freedom", "identity"],
    "tone": "whimsical",
}

# One response covering the LLM fields of every built-in entity type
DEFAULT_METADATA = {
    "characterType": "protagonist",
    "role": "Street-smart hero",
    "archetypePattern": "The Trickster",
    "personalityTraits": ["clever", "kind", "impulsive"],
    "storyFunction": "Drives the plot forward",
    "thematicConnection": "Embodies the longing for freedom",
    "narrativeFunction": "Inciting incident",
    "narrativeArc": "From outcast to hero",
    "category": "philosophy",
    "summary": "A resourceful young thief who dreams of a life beyond the streets.",
}

DEFAULT_RELATIONSHIPS = [
    {
        "type": "LOVES",
        "targetId": "char_2",
        "targetType": "character",
        "confidence": 0.9,
        "reasoning": "The description says he dreams of a life with Jasmine",
    },
    {
        "type": "OPPOSES",
        "targetId": "char_3",
        "targetType": "character",
        "confidence": 0.85,
        "reasoning": "Jafar is his antagonist",
    },
]


class ScriptedLLM:
    """
    Async `llm_caller` returning canned JSON.

    Relationship prompts get `relationships`, every other prompt gets
    `metadata`. Setting `fail` makes every call raise.
    """

    def __init__(self, metadata: Optional[Dict[str, Any]] = None,
                 relationships: Optional[List[Dict[str, Any]]] = None):
        self.metadata = dict(DEFAULT_METADATA if metadata is None else metadata)
        self.relationships = list(DEFAULT_RELATIONSHIPS if relationships is None else relationships)
        self.fail: Optional[Exception] = None
        self.raw_response: Optional[str] = None
        self.calls: List[str] = []

    async def __call__(self, prompt: str, system_prompt: str = "") -> str:
        self.calls.append(prompt)
        if self.fail is not None:
            raise self.fail
        if self.raw_response is not None:
            return self.raw_response
        if "ALLOWED RELATIONSHIP TYPES" in prompt:
            return json.dumps(self.relationships)
        return json.dumps(self.metadata)

    @property
    def metadata_calls(self) -> int:
        return sum(1 for p in self.calls if "FIELDS TO GENERATE" in p)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def prep_config() -> PrepConfig:
    config = PrepConfig()
    config.queue.base_delay = 0.0
    config.queue.max_delay = 0.0
    return config


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def llm_client(scripted_llm) -> CallableLLMClient:
    return CallableLLMClient(scripted_llm, model="test-model")


@pytest.fixture
def registry(prep_config) -> ConfigRegistry:
    return ConfigRegistry(features=prep_config.features)


@pytest.fixture
def structured_store() -> InMemoryStructuredStore:
    return InMemoryStructuredStore({
        "projects": [dict(PROJECT_RECORD)],
        "episodes": [{"id": "ep_1", "name": "Pilot", "project": {"id": PROJECT_ID}}],
        "conversations": [],
        "workflows": [],
    })


@pytest.fixture
def dynamic_provider() -> InMemoryDynamicStoreProvider:
    return InMemoryDynamicStoreProvider({
        PROJECT_SLUG: InMemoryDynamicStore({
            "characters": [
                {"id": "char_2", "name": "Jasmine"},
                {"id": "char_3", "name": "Jafar"},
            ],
            "scenes": [{"id": "scene_1", "name": "Marketplace Chase", "sceneNumber": 1}],
            "locations": [{"id": "loc_1", "name": "Agrabah"}],
        })
    })


@pytest.fixture
def knowledge_store() -> InMemoryKnowledgeStore:
    return InMemoryKnowledgeStore()


@pytest.fixture
def cache(prep_config) -> CacheManager:
    return CacheManager(MemoryCacheBackend(), prep_config.cache)


@pytest.fixture
def queue(prep_config) -> QueueManager:
    return QueueManager(prep_config.queue)


@pytest.fixture
def gatherer(structured_store, knowledge_store, dynamic_provider, cache, prep_config) -> ContextGatherer:
    return ContextGatherer(
        structured_store=structured_store,
        knowledge_store=knowledge_store,
        dynamic_provider=dynamic_provider,
        cache=cache,
        config=prep_config,
    )


@pytest.fixture
def agent(registry, gatherer, llm_client, cache, queue, prep_config) -> DataPreparationAgent:
    return DataPreparationAgent(
        registry=registry,
        gatherer=gatherer,
        metadata_generator=MetadataGenerator(llm_client, registry),
        relationship_discoverer=RelationshipDiscoverer(llm_client, registry),
        cache=cache,
        queue=queue,
        config=prep_config,
    )


@pytest.fixture
def aladdin() -> Dict[str, Any]:
    return {
        "id": "char_1",
        "name": "Aladdin",
        "description": "A street-smart young thief from Agrabah who dreams of a better life with Jasmine.",
    }


@pytest.fixture
def character_options() -> PrepareOptions:
    return PrepareOptions(
        project_id=PROJECT_ID,
        entity_type="character",
        source_collection="characters",
        user_id="user_1",
    )
