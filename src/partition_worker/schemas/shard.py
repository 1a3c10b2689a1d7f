"""
Shard schema.

A shard is one partition of work assigned to a single worker instance. It is
immutable once received; the worker never asks for more data for an
in-flight shard.
"""

from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

RawRecord = Dict[str, Any]


class Shard(BaseModel):
    """Schema for a decoded step-execution request.

    Attributes:
        shard_id: Identifier reported back on the status message
        records: Ordered raw records of this partition
        metadata: Envelope metadata (headers and wrapped-body metadata)
    """

    model_config = ConfigDict(frozen=True)

    shard_id: str = Field(
        ...,
        description="Identifier of this partition of work",
        min_length=1,
    )
    records: Tuple[RawRecord, ...] = Field(
        default=(),
        description="Ordered raw records of this partition",
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Envelope metadata",
    )

    @field_validator("shard_id")
    @classmethod
    def validate_shard_id(cls, v: str) -> str:
        """Ensure shard id is not whitespace-only."""
        if not v.strip():
            raise ValueError("shard_id cannot be empty or whitespace")
        return v.strip()

    def __len__(self) -> int:
        return len(self.records)
