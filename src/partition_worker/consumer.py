"""
Kafka consumer for the request channel.

Provides async Kafka consumer functionality with:
- Manual offset commit for at-least-once processing
- SASL/PLAIN authentication when configured
- Graceful shutdown handling
- Message handler pattern for processing logic
- Error classification on handler failure
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aiokafka import AIOKafkaConsumer
from aiokafka.structs import ConsumerRecord, TopicPartition

from core.errors import ErrorCategory, classify_exception
from partition_worker.config import WorkerConfig
from partition_worker.metrics import record_message_consumed, record_processing_error

logger = logging.getLogger(__name__)


def sasl_options(config: WorkerConfig) -> Dict[str, Any]:
    """aiokafka security keyword arguments for a worker config."""
    options: Dict[str, Any] = {"security_protocol": config.security_protocol}
    if config.security_protocol.startswith("SASL"):
        options["sasl_mechanism"] = config.sasl_mechanism
        options["sasl_plain_username"] = config.sasl_plain_username
        options["sasl_plain_password"] = config.sasl_plain_password
    return options


class BaseKafkaConsumer:
    """
    Async Kafka consumer with manual commit.

    The offset of a message is committed only after message_handler returns,
    and only up to that message. A handler exception rewinds the partition to
    the failed message, so it is fetched again before any later message of
    that partition is handled or committed.

    Usage:
        >>> config = WorkerConfig.from_env()
        >>> async def handle_message(record: ConsumerRecord):
        ...     print(f"Received: {record.value}")
        >>>
        >>> consumer = BaseKafkaConsumer(
        ...     config=config,
        ...     topics=["partition.requests"],
        ...     group_id="partition-simpleStep-worker",
        ...     message_handler=handle_message
        ... )
        >>> await consumer.start()
        >>> # Consumer runs until stopped
        >>> await consumer.stop()
    """

    def __init__(
        self,
        config: WorkerConfig,
        topics: List[str],
        group_id: str,
        message_handler: Callable[[ConsumerRecord], Awaitable[None]],
        retry_backoff_seconds: float = 1.0,
    ):
        """
        Initialize Kafka consumer.

        Args:
            config: Worker configuration
            topics: List of topics to subscribe to
            group_id: Consumer group ID for offset management
            message_handler: Async callback function to process messages
            retry_backoff_seconds: Pause before a failed message is fetched again
        """
        if not topics:
            raise ValueError("At least one topic must be specified")

        self.config = config
        self.topics = topics
        self.group_id = group_id
        self.message_handler = message_handler
        self.retry_backoff_seconds = retry_backoff_seconds
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._running = False

        logger.info(
            "Initialized Kafka consumer",
            extra={
                "topics": topics,
                "group_id": group_id,
                "bootstrap_servers": config.bootstrap_servers,
            },
        )

    async def start(self) -> None:
        """
        Start the Kafka consumer and begin processing messages.

        Runs the consumption loop until stop() is called.

        Raises:
            Exception: If consumer fails to start or connect
        """
        if self._running:
            logger.warning("Consumer already running, ignoring duplicate start call")
            return

        logger.info(
            "Starting Kafka consumer",
            extra={"topics": self.topics, "group_id": self.group_id},
        )

        self._consumer = AIOKafkaConsumer(
            *self.topics,
            bootstrap_servers=self.config.bootstrap_servers,
            group_id=self.group_id,
            enable_auto_commit=self.config.enable_auto_commit,
            auto_offset_reset=self.config.auto_offset_reset,
            max_poll_records=self.config.max_poll_records,
            max_poll_interval_ms=self.config.max_poll_interval_ms,
            session_timeout_ms=self.config.session_timeout_ms,
            **sasl_options(self.config),
        )

        await self._consumer.start()
        self._running = True

        logger.info(
            "Kafka consumer started successfully",
            extra={"topics": self.topics, "group_id": self.group_id},
        )

        try:
            await self._consume_loop()
        except asyncio.CancelledError:
            logger.info("Consumer loop cancelled, shutting down")
            raise
        except Exception as e:
            logger.error(
                "Consumer loop terminated with error",
                extra={"error": str(e)},
                exc_info=True,
            )
            raise
        finally:
            self._running = False

    async def stop(self) -> None:
        """
        Stop the Kafka consumer and cleanup resources.

        Safe to call multiple times.
        """
        if self._consumer is None:
            logger.debug("Consumer not running or already stopped")
            return

        logger.info("Stopping Kafka consumer")
        self._running = False

        try:
            await self._consumer.stop()
            logger.info("Kafka consumer stopped successfully")
        except Exception as e:
            logger.error(
                "Error stopping Kafka consumer",
                extra={"error": str(e)},
                exc_info=True,
            )
            raise
        finally:
            self._consumer = None

    async def _consume_loop(self) -> None:
        """Fetch messages, run the handler on each, commit after success."""
        logger.info("Starting message consumption loop")

        while self._running and self._consumer:
            try:
                data = await self._consumer.getmany(timeout_ms=1000)

                for topic_partition, messages in data.items():
                    for message in messages:
                        if not self._running:
                            logger.info("Consumer stopped, breaking message loop")
                            return

                        if not await self._process_message(message):
                            # Later messages of this partition wait behind the failed one
                            self._consumer.seek(topic_partition, message.offset)
                            await asyncio.sleep(self.retry_backoff_seconds)
                            break

            except asyncio.CancelledError:
                logger.info("Consumption loop cancelled")
                raise
            except Exception as e:
                logger.error(
                    "Error in consumption loop",
                    extra={"error": str(e)},
                    exc_info=True,
                )
                await asyncio.sleep(1)

    async def _process_message(self, message: ConsumerRecord) -> bool:
        """Run the handler on one message. Returns False if the handler raised."""
        logger.debug(
            "Processing message",
            extra={
                "topic": message.topic,
                "partition": message.partition,
                "offset": message.offset,
                "key": message.key.decode("utf-8") if message.key else None,
            },
        )

        try:
            await self.message_handler(message)
        except Exception as e:
            record_message_consumed(message.topic, self.group_id, success=False)
            self._handle_processing_error(message, e)
            return False

        # Commit after successful processing (at-least-once semantics)
        await self._consumer.commit(
            {TopicPartition(message.topic, message.partition): message.offset + 1}
        )
        record_message_consumed(message.topic, self.group_id, success=True)

        logger.debug(
            "Message processed successfully",
            extra={
                "topic": message.topic,
                "partition": message.partition,
                "offset": message.offset,
            },
        )
        return True

    def _handle_processing_error(self, message: ConsumerRecord, error: Exception) -> None:
        """
        Log a handler failure by category.

        The offset is never committed for a failed message; every category
        ends in redelivery.
        """
        error_category = classify_exception(error)

        record_processing_error(message.topic, self.group_id, error_category.value)

        log_extra = {
            "topic": message.topic,
            "partition": message.partition,
            "offset": message.offset,
            "group_id": self.group_id,
            "error_type": type(error).__name__,
            "error_category": error_category.value,
            "error_message": str(error),
        }

        if error_category in (ErrorCategory.TRANSIENT, ErrorCategory.AUTH):
            logger.warning(
                "Transient error processing message - will retry on redelivery",
                extra=log_extra,
                exc_info=True,
            )
        else:
            logger.error(
                "Error processing message - offset not committed",
                extra=log_extra,
                exc_info=True,
            )

    @property
    def is_running(self) -> bool:
        """Check if consumer is running and processing messages."""
        return self._running and self._consumer is not None


__all__ = [
    "BaseKafkaConsumer",
    "sasl_options",
]
