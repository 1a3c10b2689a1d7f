"""Tests for shard, entity and status schemas."""

import pytest
from pydantic import ValidationError

from partition_worker.schemas import (
    DomainEntity,
    ErrorDescriptor,
    Shard,
    StepExecutionStatus,
    StepOutcome,
)


class TestShard:

    def test_strips_shard_id(self):
        assert Shard(shard_id="  s1 ").shard_id == "s1"

    @pytest.mark.parametrize("shard_id", ["", "   "])
    def test_rejects_blank_shard_id(self, shard_id):
        with pytest.raises(ValidationError):
            Shard(shard_id=shard_id)

    def test_is_immutable(self):
        shard = Shard(shard_id="s1", records=[{"id": "f1"}])

        with pytest.raises(ValidationError):
            shard.shard_id = "s2"
        assert len(shard) == 1


class TestDomainEntity:

    def test_defaults_unset(self):
        entity = DomainEntity()

        assert entity.identity is None
        assert entity.payload is None


class TestStepExecutionStatus:

    def test_error_message_truncated(self):
        error = ErrorDescriptor(error_type="WriteFailure", message="x" * 1000)

        assert len(error.message) == 500
        assert error.message.endswith("...")

    def test_counts_non_negative(self):
        with pytest.raises(ValidationError):
            StepExecutionStatus(
                shard_id="s1", processed_count=-1, outcome=StepOutcome.COMPLETED
            )

    def test_failed_factory(self):
        error = ErrorDescriptor(error_type="DecodeFailure", category="permanent")

        status = StepExecutionStatus.failed("s1", [error])

        assert status.outcome == StepOutcome.FAILED
        assert not status.succeeded
        assert status.processed_count == 0
        assert status.errors == (error,)

    def test_accepts_wire_aliases(self):
        status = StepExecutionStatus.model_validate(
            {"shardId": "s1", "processedCount": 3, "outcome": "COMPLETED"}
        )

        assert status.processed_count == 3
        assert status.succeeded
