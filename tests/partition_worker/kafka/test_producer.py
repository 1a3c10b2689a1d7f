"""Tests for BaseKafkaProducer."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from partition_worker.config import WorkerConfig
from partition_worker.producer import BaseKafkaProducer
from partition_worker.schemas.status import StepExecutionStatus, StepOutcome


@pytest.fixture
def producer():
    producer = BaseKafkaProducer(WorkerConfig(bootstrap_servers="localhost:9092"))
    producer._producer = AsyncMock()
    producer._producer.send_and_wait.return_value = MagicMock(
        topic="partition.replies", partition=0, offset=12
    )
    producer._started = True
    return producer


@pytest.mark.asyncio
class TestBaseKafkaProducer:

    async def test_send_bytes(self, producer):
        metadata = await producer.send(
            topic="partition.replies",
            key="shard-1",
            value=b'{"shardId": "shard-1"}',
            headers=[("shard_id", b"shard-1")],
        )

        producer._producer.send_and_wait.assert_awaited_once_with(
            "partition.replies",
            key=b"shard-1",
            value=b'{"shardId": "shard-1"}',
            headers=[("shard_id", b"shard-1")],
        )
        assert metadata.offset == 12

    async def test_send_model_uses_wire_aliases(self, producer):
        status = StepExecutionStatus(shard_id="s1", outcome=StepOutcome.COMPLETED)

        await producer.send(topic="partition.replies", key="s1", value=status)

        value = producer._producer.send_and_wait.call_args.kwargs["value"]
        assert b'"shardId":"s1"' in value

    async def test_send_failure_is_raised(self, producer):
        producer._producer.send_and_wait.side_effect = ConnectionError("broker down")

        with pytest.raises(ConnectionError):
            await producer.send(topic="partition.replies", key="s1", value=b"{}")

    async def test_send_requires_start(self):
        producer = BaseKafkaProducer(WorkerConfig(bootstrap_servers="localhost:9092"))

        with pytest.raises(RuntimeError, match="not started"):
            await producer.send(topic="t", key="k", value=b"{}")

    async def test_start_and_stop(self):
        producer = BaseKafkaProducer(WorkerConfig(bootstrap_servers="localhost:9092", acks="1"))

        with patch("partition_worker.producer.AIOKafkaProducer") as mock_cls:
            mock_cls.return_value = AsyncMock()
            await producer.start()
            assert producer.is_started
            assert mock_cls.call_args.kwargs["acks"] == "1"

            await producer.stop()

        mock_cls.return_value.flush.assert_awaited_once()
        mock_cls.return_value.stop.assert_awaited_once()
        assert not producer.is_started
