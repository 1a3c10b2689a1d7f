"""
Tests for the chunked step engine.

Tests cover:
- Chunk sizing (single chunk, k*chunk + r, exact multiples)
- Fail-fast behavior on sink failures
- Empty shards
- Single-use engines and state transitions
- Step execution finalization
"""

from unittest.mock import AsyncMock

import pytest

from core.errors import ErrorCategory, WriteFailure
from partition_worker.schemas.status import StepOutcome
from partition_worker.step.engine import ChunkedStepEngine, StepExecution, StepState
from partition_worker.step.reader import ItemReader
from partition_worker.step.transformer import ItemTransformer
from partition_worker.writers.memory import InMemoryEntityWriter


def build_engine(records, sink, chunk_size=100, shard_id="shard-1"):
    return ChunkedStepEngine(
        shard_id=shard_id,
        reader=ItemReader(records),
        transformer=ItemTransformer(),
        sink=sink,
        chunk_size=chunk_size,
    )


class FailingOnCallSink:
    """Sink that raises on the Nth write call (1-based)."""

    def __init__(self, fail_on: int, error: Exception):
        self.fail_on = fail_on
        self.error = error
        self.calls = []

    async def write(self, entities):
        self.calls.append([e.identity for e in entities])
        if len(self.calls) == self.fail_on:
            raise self.error


@pytest.mark.asyncio
class TestChunking:
    """Chunk boundaries and processed counts."""

    async def test_two_chunks_for_150_records(self, records_150):
        """150 records at chunk size 100 -> writes of 100 and 50."""
        sink = InMemoryEntityWriter()

        status = await build_engine(records_150, sink).run()

        assert sink.write_calls == [100, 50]
        assert status.processed_count == 150
        assert status.failure_count == 0
        assert status.outcome == StepOutcome.COMPLETED
        assert status.errors == ()
        assert len(sink) == 150

    @pytest.mark.parametrize("count", [1, 37, 99, 100])
    async def test_single_chunk_when_records_fit(self, make_records, count):
        sink = InMemoryEntityWriter()

        status = await build_engine(make_records(count), sink).run()

        assert sink.write_calls == [count]
        assert status.processed_count == count
        assert status.outcome == StepOutcome.COMPLETED

    @pytest.mark.parametrize(
        "k,chunk_size,r",
        [(1, 10, 3), (2, 7, 1), (3, 4, 2), (5, 1, 0)],
    )
    async def test_k_chunks_plus_remainder(self, make_records, k, chunk_size, r):
        """k*chunk + r records -> k full chunks and a final chunk of r."""
        sink = InMemoryEntityWriter()

        status = await build_engine(
            make_records(k * chunk_size + r), sink, chunk_size=chunk_size
        ).run()

        expected = [chunk_size] * k + ([r] if r else [])
        assert sink.write_calls == expected
        assert status.processed_count == k * chunk_size + r

    async def test_exact_multiple_needs_no_trailing_write(self, make_records):
        """A final empty read completes the step without calling the sink."""
        sink = InMemoryEntityWriter()

        await build_engine(make_records(200), sink, chunk_size=100).run()

        assert sink.write_calls == [100, 100]

    async def test_chunks_written_in_shard_order(self, make_records):
        sink = FailingOnCallSink(fail_on=0, error=RuntimeError())

        await build_engine(make_records(5), sink, chunk_size=2).run()

        assert sink.calls == [["f1", "f2"], ["f3", "f4"], ["f5"]]

    async def test_empty_shard_completes_without_sink_call(self):
        sink = AsyncMock()

        status = await build_engine([], sink).run()

        sink.write.assert_not_called()
        assert status.processed_count == 0
        assert status.outcome == StepOutcome.COMPLETED
        assert status.errors == ()


@pytest.mark.asyncio
class TestWriteFailure:
    """Fail-fast on sink rejection."""

    async def test_failure_on_first_chunk(self, make_records):
        """10 records, sink rejects the first call -> FAILED with nothing processed."""
        sink = FailingOnCallSink(
            fail_on=1,
            error=WriteFailure("store unavailable", entity_ids=["f1"]),
        )

        status = await build_engine(make_records(10), sink).run()

        assert len(sink.calls) == 1
        assert status.processed_count == 0
        assert status.failure_count == 10
        assert status.outcome == StepOutcome.FAILED
        assert len(status.errors) == 1

        error = status.errors[0]
        assert error.error_type == "WriteFailure"
        assert error.chunk_index == 0
        assert error.entity_ids == ("f1",)
        assert "store unavailable" in error.message

    async def test_partial_progress_is_preserved(self, make_records):
        """A failure on chunk 3 keeps the two earlier chunks in processed_count."""
        sink = FailingOnCallSink(fail_on=3, error=WriteFailure("rejected"))

        status = await build_engine(make_records(50), sink, chunk_size=10).run()

        assert len(sink.calls) == 3
        assert status.processed_count == 20
        assert status.failure_count == 10
        assert status.outcome == StepOutcome.FAILED
        assert status.errors[0].chunk_index == 2

    async def test_no_reads_after_failure(self, make_records):
        reader = ItemReader(make_records(30))
        engine = ChunkedStepEngine(
            shard_id="shard-1",
            reader=reader,
            transformer=ItemTransformer(),
            sink=FailingOnCallSink(fail_on=1, error=WriteFailure("nope")),
            chunk_size=10,
        )

        await engine.run()

        assert reader.read_count == 10

    async def test_unexpected_sink_exception_is_a_write_failure(self, make_records):
        sink = FailingOnCallSink(fail_on=1, error=ConnectionError("connection reset"))

        status = await build_engine(make_records(3), sink).run()

        assert status.outcome == StepOutcome.FAILED
        error = status.errors[0]
        assert error.error_type == "WriteFailure"
        assert error.category == ErrorCategory.TRANSIENT.value
        assert error.entity_ids == ("f1", "f2", "f3")
        assert "connection reset" in error.message

    async def test_rejecting_store_leaves_failed_chunk_unwritten(self, make_records):
        sink = InMemoryEntityWriter(reject_ids={"f15"})

        status = await build_engine(make_records(30), sink, chunk_size=10).run()

        assert sink.write_calls == [10, 10]
        assert len(sink) == 10
        assert status.processed_count == 10
        assert status.errors[0].entity_ids == ("f15",)


@pytest.mark.asyncio
class TestLifecycle:
    """State machine and single-use semantics."""

    async def test_engine_is_single_use(self, make_records):
        engine = build_engine(make_records(3), InMemoryEntityWriter())
        await engine.run()

        with pytest.raises(RuntimeError, match="single-use"):
            await engine.run()

    async def test_terminal_states(self, make_records):
        completed = build_engine(make_records(3), InMemoryEntityWriter())
        failed = build_engine(
            make_records(3), FailingOnCallSink(fail_on=1, error=WriteFailure("x"))
        )
        assert completed.state == StepState.IDLE

        await completed.run()
        await failed.run()

        assert completed.state == StepState.COMPLETED
        assert failed.state == StepState.FAILED
        assert completed.state.is_terminal
        assert not StepState.WRITING.is_terminal

    async def test_execution_tracks_internal_state(self, make_records):
        engine = build_engine(make_records(25), InMemoryEntityWriter(), chunk_size=10)

        status = await engine.run()

        execution = engine.execution
        assert execution.chunks_written == 3
        assert execution.started_at is not None
        assert execution.ended_at >= execution.started_at
        assert execution.outcome == status.outcome


class TestStepExecution:
    """Finalization of the mutable execution record."""

    def test_rejects_chunk_size_below_one(self):
        with pytest.raises(ValueError, match="chunk_size"):
            build_engine([], InMemoryEntityWriter(), chunk_size=0)

    def test_finalize_requires_terminal_state(self):
        execution = StepExecution(shard_id="shard-1", step_name="simpleStep")

        with pytest.raises(RuntimeError, match="IDLE"):
            execution.finalize()

    def test_finalize_projects_reportable_fields(self):
        execution = StepExecution(
            shard_id="shard-1",
            step_name="simpleStep",
            state=StepState.COMPLETED,
            processed_count=7,
            chunks_written=1,
        )

        status = execution.finalize()

        assert status.shard_id == "shard-1"
        assert status.processed_count == 7
        assert status.outcome == StepOutcome.COMPLETED
        assert not hasattr(status, "chunks_written")
