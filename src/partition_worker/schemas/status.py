"""
Step execution status schema.

The finalized, immutable outcome of one shard's step execution. This is the
only shape that crosses the outbound channel; see
``partition_worker.envelope.project_status`` for the wire projection.
"""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_ERROR_MESSAGE_LENGTH = 500


class StepOutcome(str, Enum):
    """Terminal outcome of a step execution."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ErrorDescriptor(BaseModel):
    """One reportable failure of a step execution.

    Attributes:
        error_type: Exception class name (DecodeFailure, WriteFailure, ...)
        message: Error description (truncated to 500 chars)
        category: Error classification (transient, permanent, ...)
        chunk_index: Zero-based index of the failed chunk, if any
        entity_ids: Identities of the rejected entities, where determinable
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    error_type: str = Field(..., min_length=1)
    message: str = Field(default="")
    category: str = Field(default="unknown")
    chunk_index: Optional[int] = Field(default=None, ge=0)
    entity_ids: Tuple[str, ...] = Field(default=())

    @field_validator("message")
    @classmethod
    def truncate_message(cls, v: str) -> str:
        """Truncate error message to prevent huge messages."""
        if v and len(v) > MAX_ERROR_MESSAGE_LENGTH:
            return v[: MAX_ERROR_MESSAGE_LENGTH - 3] + "..."
        return v


class StepExecutionStatus(BaseModel):
    """Schema for the status reported once per shard.

    Immutable after construction. Field aliases are the camelCase names used
    on the wire (shardId, processedCount, failureCount, outcome, errors).

    Example:
        >>> status = StepExecutionStatus(
        ...     shard_id="shard-7",
        ...     processed_count=150,
        ...     failure_count=0,
        ...     outcome=StepOutcome.COMPLETED,
        ... )
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    shard_id: str = Field(..., min_length=1)
    processed_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    outcome: StepOutcome
    errors: Tuple[ErrorDescriptor, ...] = Field(default=())

    @property
    def succeeded(self) -> bool:
        return self.outcome == StepOutcome.COMPLETED

    @classmethod
    def failed(
        cls,
        shard_id: str,
        errors: List[ErrorDescriptor],
        processed_count: int = 0,
        failure_count: int = 0,
    ) -> "StepExecutionStatus":
        """Build a FAILED status, e.g. for a shard that never started."""
        return cls(
            shard_id=shard_id,
            processed_count=processed_count,
            failure_count=failure_count,
            outcome=StepOutcome.FAILED,
            errors=tuple(errors),
        )
