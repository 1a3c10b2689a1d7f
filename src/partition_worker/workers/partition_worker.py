"""
Partition Step Worker - Runs shard requests and reports their status.

For every request message:
1. Decodes the envelope into a Shard
2. Runs a fresh ChunkedStepEngine over it (reader -> transformer -> sink)
3. Encodes the finalized StepExecutionStatus
4. Produces it to the reply topic, keyed by shard id

A request that cannot be decoded never starts a step. If a shard id could be
salvaged a FAILED status is still reported for it; otherwise the message is
dropped with a logged diagnostic.

Consumer group: {prefix}-{step_name}-worker
Input topic: partition.requests
Output topic: partition.replies
"""

from typing import Optional

from aiokafka.structs import ConsumerRecord

from core.errors import DecodeFailure, EncodeFailure
from core.logging.context import set_log_context
from core.logging.setup import get_logger
from partition_worker.consumer import BaseKafkaConsumer
from partition_worker.context import WorkerContext
from partition_worker.envelope import shard_headers
from partition_worker.metrics import (
    record_decode_failure,
    record_shard_processed,
    record_status_report_lost,
)
from partition_worker.producer import BaseKafkaProducer
from partition_worker.schemas.shard import Shard
from partition_worker.schemas.status import ErrorDescriptor, StepExecutionStatus
from partition_worker.step.engine import ChunkedStepEngine
from partition_worker.step.reader import ItemReader

logger = get_logger(__name__)


class PartitionStepWorker:
    """
    Worker that executes one step over each shard it receives.

    Shards are processed one at a time per worker; several shards run
    concurrently only across consumer partitions and processes. Each shard
    gets its own engine and reader, so nothing mutable is shared between
    shards.

    The request offset is committed after the status is produced. A publish
    failure propagates to the consumer, leaving the offset uncommitted so
    the shard is redelivered (sink writes are upserts, so rerunning is safe).
    """

    def __init__(self, context: WorkerContext):
        """
        Args:
            context: Process context with config, sink and envelope transformer
        """
        self.context = context
        self.producer: Optional[BaseKafkaProducer] = None
        self.consumer: Optional[BaseKafkaConsumer] = None
        self.consumer_group = self.config.get_consumer_group()

        logger.info(
            "Initialized PartitionStepWorker",
            extra={
                "group_id": self.consumer_group,
                "request_topic": self.config.request_topic,
                "reply_topic": self.config.reply_topic,
                "step_name": self.config.step_name,
                "chunk_size": self.config.chunk_size,
            },
        )

    @property
    def config(self):
        return self.context.config

    async def start(self) -> None:
        """
        Start producer and consumer; runs until stop() is called.

        Raises:
            Exception: If producer or consumer fails to start
        """
        logger.info("Starting PartitionStepWorker")

        self.producer = BaseKafkaProducer(self.config)
        await self.producer.start()

        self.consumer = BaseKafkaConsumer(
            config=self.config,
            topics=[self.config.request_topic],
            group_id=self.consumer_group,
            message_handler=self.handle_request,
        )

        # Blocks until stopped
        await self.consumer.start()

    async def stop(self) -> None:
        """Stop consumer first, then flush and stop the producer."""
        logger.info("Stopping PartitionStepWorker")

        if self.consumer:
            await self.consumer.stop()

        if self.producer:
            await self.producer.stop()

        logger.info("PartitionStepWorker stopped successfully")

    async def handle_request(self, record: ConsumerRecord) -> None:
        """
        Process one request message end to end.

        Raises:
            Exception: If the status could not be produced (consumer leaves
                the offset uncommitted)
        """
        try:
            shard = self.context.envelope.decode(record.value, record.headers)
        except DecodeFailure as e:
            await self._handle_decode_failure(record, e)
            return

        status = await self.process_shard(shard)
        await self.publish_status(status)

    async def process_shard(self, shard: Shard) -> StepExecutionStatus:
        """Run a fresh engine over one shard and return its finalized status."""
        set_log_context(shard_id=shard.shard_id)

        engine = ChunkedStepEngine(
            shard_id=shard.shard_id,
            reader=ItemReader(shard.records),
            transformer=self.context.transformer,
            sink=self.context.sink,
            chunk_size=self.config.chunk_size,
            step_name=self.config.step_name,
        )
        status = await engine.run()

        record_shard_processed(
            self.config.step_name, status.outcome.value, status.processed_count
        )
        return status

    async def publish_status(self, status: StepExecutionStatus) -> None:
        """
        Encode and produce a status report.

        An encode failure loses the report: it is logged and counted, never
        raised, since the step has already finished.
        """
        try:
            body = self.context.envelope.encode(status)
        except EncodeFailure as e:
            record_status_report_lost("encode")
            logger.error(
                "Status report lost: could not encode status",
                extra={
                    "shard_id": status.shard_id,
                    "outcome": status.outcome.value,
                    "processed_count": status.processed_count,
                    "error": str(e),
                },
                exc_info=True,
            )
            return

        try:
            await self.producer.send(
                topic=self.config.reply_topic,
                key=status.shard_id,
                value=body,
                headers=shard_headers(status.shard_id),
            )
        except Exception:
            record_status_report_lost("publish")
            raise

        logger.info(
            "Published step status",
            extra={
                "shard_id": status.shard_id,
                "outcome": status.outcome.value,
                "processed_count": status.processed_count,
                "failure_count": status.failure_count,
                "topic": self.config.reply_topic,
            },
        )

    async def _handle_decode_failure(
        self, record: ConsumerRecord, error: DecodeFailure
    ) -> None:
        salvaged = error.shard_id is not None
        record_decode_failure(salvaged=salvaged)

        log_extra = {
            "topic": record.topic,
            "partition": record.partition,
            "offset": record.offset,
            "shard_id": error.shard_id,
            "error": str(error),
        }

        if not salvaged:
            logger.error(
                "Dropping undecodable request: no shard id to report against",
                extra=log_extra,
            )
            return

        logger.error("Undecodable request, reporting FAILED status", extra=log_extra)
        status = StepExecutionStatus.failed(
            shard_id=error.shard_id,
            errors=[
                ErrorDescriptor(
                    error_type=type(error).__name__,
                    message=str(error),
                    category=error.category.value,
                )
            ],
        )
        await self.publish_status(status)


__all__ = ["PartitionStepWorker"]
