"""
Message and domain schemas.

Pydantic models for the shard request, the domain entity and the step
execution status.

Schemas:
    shard.py    - Shard (decoded step-execution request)
    entities.py - DomainEntity (normalized record persisted by the sink)
    status.py   - StepExecutionStatus, ErrorDescriptor, StepOutcome

Design Decisions:
    - Pydantic for validation
    - Frozen models: a shard is immutable once received, a status once
      finalized
    - Status serialization is NOT model_dump(): the outbound projection is
      hand-written in partition_worker.envelope
"""

from partition_worker.schemas.entities import DomainEntity
from partition_worker.schemas.shard import RawRecord, Shard
from partition_worker.schemas.status import (
    ErrorDescriptor,
    StepExecutionStatus,
    StepOutcome,
)

__all__ = [
    "DomainEntity",
    "ErrorDescriptor",
    "RawRecord",
    "Shard",
    "StepExecutionStatus",
    "StepOutcome",
]
