"""
Brainprep Custom Exceptions

Custom exception classes for error handling throughout the data preparation pipeline.
"""

from typing import List


class BrainPrepError(Exception):
    """Base exception for all brainprep errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(BrainPrepError):
    """Raised when there's an issue with configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


class TemplateError(InvalidConfigError):
    """Raised when a prompt template and its declared variables disagree."""

    def __init__(self, template_name: str, reason: str):
        message = f"Prompt template '{template_name}' is invalid: {reason}"
        super().__init__(message, {"template": template_name, "reason": reason})


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class PipelineError(BrainPrepError):
    """Base exception for pipeline errors."""
    pass


class InputValidationError(PipelineError):
    """Raised before any I/O when a request is missing required fields."""

    def __init__(self, field_name: str):
        message = f"{field_name} is required"
        super().__init__(message, {"field": field_name})


class ContextSourceError(PipelineError):
    """Raised when a single context source cannot be reached."""

    def __init__(self, source: str, reason: str):
        message = f"Context source '{source}' failed: {reason}"
        super().__init__(message, {"source": source, "reason": reason})


class MetadataGenerationError(PipelineError):
    """Raised when metadata could not be generated for an entity."""
    pass


class RelationshipDiscoveryError(PipelineError):
    """Raised when relationship discovery fails."""
    pass


class DocumentValidationError(PipelineError):
    """Raised when a blocking validation rule fails."""

    def __init__(self, errors: List[str], warnings: List[str] = None):
        message = f"Validation failed: {', '.join(errors)}"
        super().__init__(message, {"errors": errors, "warnings": warnings or []})
        self.errors = errors
        self.warnings = warnings or []


class StorageError(PipelineError):
    """Raised when the knowledge store rejects a write."""
    pass


class PipelineTimeoutError(PipelineError):
    """Raised when a request exceeds its caller-supplied deadline."""

    def __init__(self, deadline_seconds: float, stage: str = ""):
        message = f"Preparation exceeded deadline of {deadline_seconds:.1f}s"
        if stage:
            message += f" during stage '{stage}'"
        super().__init__(message, {"deadline_seconds": deadline_seconds, "stage": stage})


# =============================================================================
# LLM ERRORS
# =============================================================================

class LLMError(BrainPrepError):
    """Base exception for LLM-related errors."""
    pass


class LLMProviderError(LLMError):
    """Raised when there's an issue with an LLM provider."""

    def __init__(self, provider: str, reason: str):
        message = f"LLM provider '{provider}' error: {reason}"
        super().__init__(message, {"provider": provider, "reason": reason})


class LLMResponseError(LLMError):
    """Raised when LLM response is invalid or unexpected."""
    pass


# =============================================================================
# QUEUE ERRORS
# =============================================================================

class QueueError(BrainPrepError):
    """Base exception for queue errors."""
    pass


class QueueDisabledError(QueueError):
    """Raised when async preparation is requested with the queue feature off."""

    def __init__(self):
        super().__init__("Queue feature is disabled")


class JobNotFoundError(QueueError):
    """Raised when a job id is unknown to the queue."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: '{job_id}'", {"job_id": job_id})


# =============================================================================
# INTEGRATION ERRORS
# =============================================================================

class HookSyncError(BrainPrepError):
    """Raised by lifecycle hooks to fail the triggering write."""

    def __init__(self, collection: str, doc_id: str, reason: str):
        message = f"Failed to sync {collection} to brain service: {reason}"
        super().__init__(message, {"collection": collection, "doc_id": doc_id})
