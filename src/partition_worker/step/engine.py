"""
Chunked step engine.

Runs one shard through reader -> transformer -> sink in bounded chunks:

    IDLE -> READING -> TRANSFORMING -> WRITING -> (READING | COMPLETED | FAILED)

- Up to chunk_size records are read per chunk; an empty read means the
  stream is exhausted and the step completes without a sink call.
- Each chunk is written with exactly one sink call. A sink failure fails the
  step immediately: no further chunks are read, nothing is retried, and the
  processed count of earlier chunks is preserved.
- Chunk N+1 is not read until chunk N's write has returned.

An engine instance processes exactly one shard and is not reusable.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from core.errors import WriteFailure
from core.logging.context import set_log_context
from core.logging.setup import get_logger
from partition_worker.metrics import record_chunk_written
from partition_worker.schemas.entities import DomainEntity
from partition_worker.schemas.shard import RawRecord
from partition_worker.schemas.status import (
    ErrorDescriptor,
    StepExecutionStatus,
    StepOutcome,
)
from partition_worker.step.reader import END_OF_STREAM, ItemReader
from partition_worker.writers.base import ItemSink

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 100

Transform = Callable[[Mapping[str, Any]], DomainEntity]


class StepState(str, Enum):
    """States of the chunked step engine."""

    IDLE = "IDLE"
    READING = "READING"
    TRANSFORMING = "TRANSFORMING"
    WRITING = "WRITING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (StepState.COMPLETED, StepState.FAILED)


_TRANSITIONS = {
    StepState.IDLE: {StepState.READING},
    StepState.READING: {StepState.TRANSFORMING, StepState.COMPLETED},
    StepState.TRANSFORMING: {StepState.WRITING},
    StepState.WRITING: {StepState.READING, StepState.COMPLETED, StepState.FAILED},
    StepState.COMPLETED: set(),
    StepState.FAILED: set(),
}


@dataclass
class StepExecution:
    """
    Mutable bookkeeping for one step execution.

    Owned by the engine while it runs. Besides the reportable counters it
    carries execution-internal state (timings, the live state machine
    position) that never leaves the process; finalize() projects it onto
    an immutable StepExecutionStatus.
    """

    shard_id: str
    step_name: str
    state: StepState = StepState.IDLE
    processed_count: int = 0
    failure_count: int = 0
    chunks_written: int = 0
    errors: List[ErrorDescriptor] = field(default_factory=list)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def outcome(self) -> Optional[StepOutcome]:
        if self.state == StepState.COMPLETED:
            return StepOutcome.COMPLETED
        if self.state == StepState.FAILED:
            return StepOutcome.FAILED
        return None

    def finalize(self) -> StepExecutionStatus:
        if not self.state.is_terminal:
            raise RuntimeError(
                f"Cannot finalize step execution in state {self.state.value}"
            )
        return StepExecutionStatus(
            shard_id=self.shard_id,
            processed_count=self.processed_count,
            failure_count=self.failure_count,
            outcome=self.outcome,
            errors=tuple(self.errors),
        )


class ChunkedStepEngine:
    """
    Orchestrates ItemReader -> transformer -> ItemSink for one shard.

    Usage:
        >>> engine = ChunkedStepEngine(
        ...     shard_id=shard.shard_id,
        ...     reader=ItemReader(shard.records),
        ...     transformer=ItemTransformer(),
        ...     sink=InMemoryEntityWriter(),
        ...     chunk_size=100,
        ... )
        >>> status = await engine.run()
    """

    def __init__(
        self,
        shard_id: str,
        reader: ItemReader,
        transformer: Transform,
        sink: ItemSink,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        step_name: str = "simpleStep",
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")

        self.reader = reader
        self.transformer = transformer
        self.sink = sink
        self.chunk_size = chunk_size
        self._execution = StepExecution(shard_id=shard_id, step_name=step_name)

    @property
    def state(self) -> StepState:
        return self._execution.state

    @property
    def execution(self) -> StepExecution:
        return self._execution

    async def run(self) -> StepExecutionStatus:
        """
        Process the whole shard and return its finalized status.

        Raises:
            RuntimeError: If this engine has already run
        """
        execution = self._execution
        if execution.state != StepState.IDLE:
            raise RuntimeError(
                f"Engine for shard {execution.shard_id} already ran "
                f"(state={execution.state.value}); engines are single-use"
            )

        set_log_context(shard_id=execution.shard_id)
        execution.started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()

        logger.info(
            "Starting step execution",
            extra={
                "shard_id": execution.shard_id,
                "step_name": execution.step_name,
                "chunk_size": self.chunk_size,
            },
        )

        chunk_index = 0
        while True:
            self._transition(StepState.READING)
            items, exhausted = self._read_chunk()

            if not items:
                self._transition(StepState.COMPLETED)
                break

            self._transition(StepState.TRANSFORMING)
            chunk = [self.transformer(item) for item in items]

            self._transition(StepState.WRITING)
            if not await self._write_chunk(chunk, chunk_index):
                self._transition(StepState.FAILED)
                break

            execution.processed_count += len(chunk)
            execution.chunks_written += 1
            chunk_index += 1

            if exhausted:
                self._transition(StepState.COMPLETED)
                break

        execution.ended_at = datetime.now(timezone.utc)
        status = execution.finalize()

        logger.info(
            "Step execution finished",
            extra={
                "shard_id": status.shard_id,
                "outcome": status.outcome.value,
                "processed_count": status.processed_count,
                "failure_count": status.failure_count,
                "duration_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return status

    def _transition(self, target: StepState) -> None:
        current = self._execution.state
        if target not in _TRANSITIONS[current]:
            raise RuntimeError(
                f"Illegal step transition {current.value} -> {target.value}"
            )
        self._execution.state = target

    def _read_chunk(self) -> Tuple[List[RawRecord], bool]:
        """Read up to chunk_size records; report whether the stream ended."""
        items: List[RawRecord] = []
        while len(items) < self.chunk_size:
            item = self.reader.read()
            if item is END_OF_STREAM:
                return items, True
            items.append(item)
        return items, False

    async def _write_chunk(self, chunk: Sequence[DomainEntity], chunk_index: int) -> bool:
        """Hand one chunk to the sink. Returns False if the sink rejected it."""
        start_time = time.perf_counter()
        try:
            await self.sink.write(chunk)
        except WriteFailure as e:
            self._record_write_failure(e, chunk, chunk_index, start_time)
            return False
        except Exception as e:
            failure = WriteFailure(
                f"Sink raised {type(e).__name__} for chunk {chunk_index}",
                entity_ids=[c.identity for c in chunk if c.identity],
                cause=e,
            )
            self._record_write_failure(failure, chunk, chunk_index, start_time)
            return False

        duration = time.perf_counter() - start_time
        record_chunk_written(self._execution.step_name, len(chunk), duration, success=True)
        logger.debug(
            "Chunk written",
            extra={
                "shard_id": self._execution.shard_id,
                "chunk_index": chunk_index,
                "chunk_size": len(chunk),
                "duration_ms": int(duration * 1000),
            },
        )
        return True

    def _record_write_failure(
        self,
        error: WriteFailure,
        chunk: Sequence[DomainEntity],
        chunk_index: int,
        start_time: float,
    ) -> None:
        duration = time.perf_counter() - start_time
        record_chunk_written(self._execution.step_name, len(chunk), duration, success=False)

        self._execution.failure_count += len(chunk)
        self._execution.errors.append(
            ErrorDescriptor(
                error_type=type(error).__name__,
                message=str(error),
                category=error.category.value,
                chunk_index=chunk_index,
                entity_ids=tuple(error.entity_ids),
            )
        )

        logger.error(
            "Chunk write failed, abandoning step",
            extra={
                "shard_id": self._execution.shard_id,
                "chunk_index": chunk_index,
                "chunk_size": len(chunk),
                "processed_count": self._execution.processed_count,
                "error_category": error.category.value,
                "entity_ids": error.entity_ids[:20],
                "error": str(error),
            },
            exc_info=True,
        )


__all__ = [
    "ChunkedStepEngine",
    "DEFAULT_CHUNK_SIZE",
    "StepExecution",
    "StepState",
]
