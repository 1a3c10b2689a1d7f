"""
Exception types and error classification for the partition worker.

Provides:
- ErrorCategory enum for routing decisions
- Typed exception hierarchy for pipeline errors
- Shard-processing failures (decode, write, encode)
- Error classification utilities
"""

from enum import Enum
from typing import List, Optional


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed on redelivery
                   (e.g., network timeouts, store commit conflicts)
        AUTH: Authentication failures requiring credential refresh
        PERMANENT: Non-retriable failures that won't succeed on redelivery
                   (e.g., malformed envelopes, configuration issues)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class PipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for routing decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether redelivering the work could succeed."""
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.AUTH,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class TransientError(PipelineError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


class ConfigurationError(PermanentError):
    """Invalid configuration."""

    pass


# =============================================================================
# Shard Processing Errors
# =============================================================================


class DecodeFailure(PermanentError):
    """
    Inbound envelope could not be decoded into a shard.

    ``shard_id`` is set when an identifier could be salvaged from the
    envelope headers or body, so a FAILED status can still be reported.
    """

    def __init__(
        self,
        message: str,
        shard_id: Optional[str] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message, cause, context)
        self.shard_id = shard_id


class WriteFailure(PipelineError):
    """
    The durable store rejected a chunk.

    Category follows the underlying cause so a transient store outage and a
    rejected entity can be told apart by the coordinator.
    """

    def __init__(
        self,
        message: str,
        entity_ids: Optional[List[str]] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message, cause, context)
        self.entity_ids = list(entity_ids or [])
        self.category = classify_exception(cause) if cause else ErrorCategory.UNKNOWN


class EncodeFailure(PermanentError):
    """Status could not be serialized for the outbound channel."""

    def __init__(
        self,
        message: str,
        shard_id: Optional[str] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message, cause, context)
        self.shard_id = shard_id


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_exception(exc: Exception) -> ErrorCategory:
    """
    Classify an exception into error category.

    Args:
        exc: Exception to classify

    Returns:
        Appropriate ErrorCategory
    """
    if isinstance(exc, PipelineError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    # delta-rs commit conflicts are resolved by rewriting the chunk
    delta_conflict_markers = (
        "commitfailederror",
        "failed to commit transaction",
        "transaction conflict",
        "version conflict",
        "concurrent modification",
    )
    if any(m in exc_type or m in exc_str for m in delta_conflict_markers):
        return ErrorCategory.TRANSIENT

    connection_markers = (
        "connectionerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "no route to host",
        "network unreachable",
        "broken pipe",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    auth_markers = ("401", "unauthorized", "authentication", "token expired")
    if any(m in exc_str for m in auth_markers):
        return ErrorCategory.AUTH

    if "403" in exc_str or "forbidden" in exc_str or "access denied" in exc_str:
        return ErrorCategory.PERMANENT

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN
