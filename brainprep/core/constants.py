"""
Brainprep Constants

Global constants used throughout the data preparation pipeline.
"""

from enum import Enum
from typing import List

# Written into every document's dataLineage block
LINEAGE_SOURCE = "data-preparation-agent"
LINEAGE_VERSION = 1

# =============================================================================
# CONTEXT SOURCES
# =============================================================================

class ContextSource(Enum):
    """Sources the context gatherer can read from."""
    PROJECT = "project"
    STRUCTURED = "structured"
    KNOWLEDGE = "knowledge"
    DYNAMIC = "dynamic"


ALL_CONTEXT_SOURCES: List[ContextSource] = [
    ContextSource.PROJECT,
    ContextSource.STRUCTURED,
    ContextSource.KNOWLEDGE,
    ContextSource.DYNAMIC,
]

# Collections queried in the structured (CMS) store
STRUCTURED_COLLECTIONS = ["episodes", "conversations", "workflows"]

# Collections sampled from the per-project dynamic store
DYNAMIC_SAMPLE_COLLECTIONS = ["characters", "scenes", "locations", "concepts"]

# Collection name in the structured store holding project records
PROJECTS_COLLECTION = "projects"


class EnrichmentLevel(Enum):
    """How much context and LLM work an entity type receives."""
    MINIMAL = "minimal"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"


class CreatedByType(Enum):
    """Who caused the write."""
    USER = "user"
    AGENT = "agent"


# =============================================================================
# LIMITS
# =============================================================================

KNOWLEDGE_SEARCH_LIMIT = 10
DYNAMIC_SAMPLE_LIMIT = 10
STRUCTURED_FIND_LIMIT = 10
CONTEXT_QUERY_MAX_CHARS = 500
FALLBACK_SUMMARY_MAX_CHARS = 200

TEXT_MIN_LENGTH = 10
TEXT_MAX_LENGTH = 10000

DEFAULT_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_MAX_RELATIONSHIPS = 20

# =============================================================================
# CACHE
# =============================================================================

CACHE_KEY_PREFIX = "prep"
PROJECT_CACHE_PREFIX = "project"

PROJECT_CONTEXT_TTL = 300   # 5 minutes
DOCUMENT_TTL = 3600         # 1 hour
ENTITY_TTL = 1800           # 30 minutes

# =============================================================================
# QUEUE
# =============================================================================

QUEUE_NAME = "data-preparation"
JOB_PREPARE_DATA = "prepare-data"
JOB_PREPARE_BATCH = "prepare-batch"
JOB_STORE_DATA = "store-data"
KEEP_COMPLETED_JOBS = 100
KEEP_FAILED_JOBS = 500

# =============================================================================
# INTEGRATION
# =============================================================================

INTERCEPTOR_BYPASS_COLLECTIONS = ["users"]
HOOK_BYPASS_COLLECTIONS = ["users", "media", "payload-preferences", "payload-migrations"]
