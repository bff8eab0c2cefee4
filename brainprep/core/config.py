"""
Brainprep Configuration Management

Centralized configuration system with JSON loading and validation.
Secrets and service endpoints are read from the environment via pydantic settings.
"""

import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DOCUMENT_TTL,
    ENTITY_TTL,
    PROJECT_CONTEXT_TTL,
    KNOWLEDGE_SEARCH_LIMIT,
    DYNAMIC_SAMPLE_LIMIT,
    STRUCTURED_FIND_LIMIT,
    INTERCEPTOR_BYPASS_COLLECTIONS,
)
from .env_loader import ensure_env_loaded
from .exceptions import ConfigurationError, InvalidConfigError


class PrepSettings(BaseSettings):
    """Environment-backed settings for external services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # LLM (OpenRouter-compatible)
    openrouter_api_key: str = Field(default="")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")
    openrouter_default_model: str = Field(default="anthropic/claude-sonnet-4.5")
    openrouter_backup_model: Optional[str] = Field(default=None)

    # Brain service
    brain_service_base_url: str = Field(default="https://brain.ft.tc")
    brain_service_api_key: str = Field(default="")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379")

    log_level: str = Field(default="INFO")


@dataclass
class LLMConfig:
    """Configuration for the LLM endpoint."""
    api_key: str = ""
    base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "anthropic/claude-sonnet-4.5"
    backup_model: Optional[str] = None
    temperature: float = 0.3
    max_tokens: int = 1500


@dataclass
class BrainConfig:
    """Knowledge store endpoint."""
    api_url: str = "https://brain.ft.tc"
    api_key: str = ""
    timeout: float = 30.0


@dataclass
class RedisConfig:
    """Cache backend connection."""
    url: str = "redis://localhost:6379"
    enabled: bool = False


@dataclass
class CacheConfig:
    """TTL classes in seconds."""
    project_context_ttl: int = PROJECT_CONTEXT_TTL
    document_ttl: int = DOCUMENT_TTL
    entity_ttl: int = ENTITY_TTL
    memory_max_size: int = 500


@dataclass
class QueueConfig:
    """Async queue settings."""
    concurrency: int = 5
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0


@dataclass
class FeatureFlags:
    """Global pipeline feature flags."""
    enable_caching: bool = True
    enable_queue: bool = True
    enable_validation: bool = True
    enable_relationship_discovery: bool = True


@dataclass
class ContextLimits:
    """Fetch bounds for the context gatherer."""
    knowledge_search_limit: int = KNOWLEDGE_SEARCH_LIMIT
    dynamic_sample_limit: int = DYNAMIC_SAMPLE_LIMIT
    structured_find_limit: int = STRUCTURED_FIND_LIMIT


@dataclass
class PrepConfig:
    """Main configuration for the data preparation pipeline."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    brain: BrainConfig = field(default_factory=BrainConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    features: FeatureFlags = field(default_factory=FeatureFlags)
    context: ContextLimits = field(default_factory=ContextLimits)

    batch_concurrency: int = 5
    bypass_collections: List[str] = field(
        default_factory=lambda: list(INTERCEPTOR_BYPASS_COLLECTIONS)
    )
    entity_config_paths: List[Path] = field(default_factory=list)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict) -> 'PrepConfig':
        """Create PrepConfig from dictionary."""
        config = cls()

        sections = {
            'llm': LLMConfig,
            'brain': BrainConfig,
            'redis': RedisConfig,
            'cache': CacheConfig,
            'queue': QueueConfig,
            'features': FeatureFlags,
            'context': ContextLimits,
        }
        for name, section_cls in sections.items():
            if name in data:
                try:
                    setattr(config, name, section_cls(**data[name]))
                except TypeError as e:
                    raise InvalidConfigError(f"Invalid '{name}' section: {e}")

        config.batch_concurrency = data.get('batch_concurrency', config.batch_concurrency)
        config.bypass_collections = list(data.get('bypass_collections', config.bypass_collections))
        config.entity_config_paths = [Path(p) for p in data.get('entity_config_paths', [])]
        config.log_level = data.get('log_level', config.log_level)

        config.validate()
        return config

    @classmethod
    def from_settings(cls, settings: Optional[PrepSettings] = None) -> 'PrepConfig':
        """Create PrepConfig with endpoints and secrets from the environment."""
        ensure_env_loaded()
        settings = settings or PrepSettings()
        config = cls()
        config.llm.api_key = settings.openrouter_api_key
        config.llm.base_url = settings.openrouter_base_url
        config.llm.default_model = settings.openrouter_default_model
        config.llm.backup_model = settings.openrouter_backup_model
        config.brain.api_url = settings.brain_service_base_url
        config.brain.api_key = settings.brain_service_api_key
        config.redis.url = settings.redis_url
        config.log_level = settings.log_level
        return config

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['entity_config_paths'] = [str(p) for p in self.entity_config_paths]
        return data

    def validate(self) -> None:
        """Reject values the pipeline cannot run with."""
        if self.queue.max_retries < 0:
            raise InvalidConfigError("queue.max_retries must be >= 0")
        if self.queue.concurrency < 1:
            raise InvalidConfigError("queue.concurrency must be >= 1")
        if self.batch_concurrency < 1:
            raise InvalidConfigError("batch_concurrency must be >= 1")
        for name in ('project_context_ttl', 'document_ttl', 'entity_ttl'):
            if getattr(self.cache, name) <= 0:
                raise InvalidConfigError(f"cache.{name} must be positive")


def load_config(config_path: Path = None) -> PrepConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded PrepConfig instance
    """
    if config_path is None:
        config_path = Path("config/brainprep_config.json")
    config_path = Path(config_path)

    if not config_path.exists():
        return PrepConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {e}")

    return PrepConfig.from_dict(data)


def save_config(config: PrepConfig, config_path: Path) -> None:
    """Write configuration to a JSON file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)
