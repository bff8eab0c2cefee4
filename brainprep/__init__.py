"""
brainprep - Data Preparation Pipeline for the Brain Knowledge Store

Every entity written to the knowledge store is first enriched with project
context, LLM-generated metadata and relationships, validated, and committed
once, synchronously or through the job queue.

Version: 1.0.0
"""

__version__ = "1.0.0"
__project__ = "brainprep"

# Load environment variables early - before any other imports that might need them
from brainprep.core.env_loader import ensure_env_loaded
ensure_env_loaded()

from .core import PrepConfig, PrepareOptions, EnrichedDocument
from .config import ConfigRegistry
from .pipelines import DataPreparationAgent, BatchItemResult
from .integration import BrainServiceInterceptor, HookAdapter, HookConfig
from .runtime import PrepRuntime, get_runtime, reset_runtime

__all__ = [
    "__version__",
    "PrepConfig",
    "PrepareOptions",
    "EnrichedDocument",
    "ConfigRegistry",
    "DataPreparationAgent",
    "BatchItemResult",
    "BrainServiceInterceptor",
    "HookAdapter",
    "HookConfig",
    "PrepRuntime",
    "get_runtime",
    "reset_runtime",
]
