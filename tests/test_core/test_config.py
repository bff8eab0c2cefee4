"""
Tests for Configuration Module

Tests for brainprep/core/config.py
"""

import json

import pytest

from brainprep.core.config import PrepConfig, PrepSettings, load_config, save_config
from brainprep.core.exceptions import InvalidConfigError


class TestPrepConfig:
    """Tests for PrepConfig class."""

    def test_default_config(self):
        config = PrepConfig()

        assert config.cache.project_context_ttl == 300
        assert config.cache.document_ttl == 3600
        assert config.cache.entity_ttl == 1800
        assert config.queue.concurrency == 5
        assert config.bypass_collections == ['users']
        assert config.features.enable_caching is True

    def test_config_from_dict(self):
        config = PrepConfig.from_dict({
            "queue": {"concurrency": 2, "max_retries": 5},
            "features": {"enable_queue": False},
            "batch_concurrency": 3,
            "entity_config_paths": ["configs/custom.json"],
        })

        assert config.queue.concurrency == 2
        assert config.queue.max_retries == 5
        assert config.features.enable_queue is False
        assert config.features.enable_validation is True
        assert config.batch_concurrency == 3
        assert str(config.entity_config_paths[0]).endswith("custom.json")

    def test_unknown_section_key_rejected(self):
        with pytest.raises(InvalidConfigError):
            PrepConfig.from_dict({"cache": {"not_a_ttl": 1}})

    def test_validate_rejects_zero_concurrency(self):
        config = PrepConfig()
        config.queue.concurrency = 0

        with pytest.raises(InvalidConfigError):
            config.validate()

    def test_validate_rejects_non_positive_ttl(self):
        config = PrepConfig()
        config.cache.document_ttl = 0

        with pytest.raises(InvalidConfigError):
            config.validate()

    def test_from_settings(self):
        settings = PrepSettings(
            openrouter_api_key="sk-test",
            brain_service_base_url="https://brain.example",
            brain_service_api_key="brain-key",
            redis_url="redis://cache:6379",
            log_level="DEBUG",
        )
        config = PrepConfig.from_settings(settings)

        assert config.llm.api_key == "sk-test"
        assert config.brain.api_url == "https://brain.example"
        assert config.brain.api_key == "brain-key"
        assert config.redis.url == "redis://cache:6379"
        assert config.log_level == "DEBUG"


class TestLoadSaveConfig:
    """Tests for config loading and saving."""

    def test_load_missing_file_returns_defaults(self, temp_dir):
        config = load_config(temp_dir / "missing.json")

        assert config.queue.concurrency == 5

    def test_save_and_load_round_trip(self, temp_dir):
        config = PrepConfig()
        config.queue.concurrency = 7
        config.features.enable_relationship_discovery = False
        path = temp_dir / "nested" / "config.json"

        save_config(config, path)
        loaded = load_config(path)

        assert loaded.queue.concurrency == 7
        assert loaded.features.enable_relationship_discovery is False

    def test_load_invalid_json(self, temp_dir):
        path = temp_dir / "bad.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(InvalidConfigError):
            load_config(path)

    def test_saved_file_is_json(self, temp_dir):
        path = temp_dir / "config.json"
        save_config(PrepConfig(), path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["queue"]["max_retries"] == 3
