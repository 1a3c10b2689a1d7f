"""
Kafka producer for the reply channel.

Provides async Kafka producer functionality with:
- SASL/PLAIN authentication when configured
- Header support for message routing
- Pre-encoded bytes or Pydantic model values
"""

import logging
from typing import List, Optional, Tuple, Union

from aiokafka import AIOKafkaProducer
from aiokafka.structs import RecordMetadata
from pydantic import BaseModel

from partition_worker.config import WorkerConfig
from partition_worker.consumer import sasl_options
from partition_worker.metrics import record_message_produced, record_producer_error

logger = logging.getLogger(__name__)


class BaseKafkaProducer:
    """
    Async Kafka producer.

    Usage:
        >>> config = WorkerConfig.from_env()
        >>> producer = BaseKafkaProducer(config)
        >>> await producer.start()
        >>> try:
        ...     metadata = await producer.send(
        ...         topic="partition.replies",
        ...         key="shard-7",
        ...         value=b'{"shardId": "shard-7", ...}',
        ...         headers=[("shard_id", b"shard-7")],
        ...     )
        ... finally:
        ...     await producer.stop()
    """

    def __init__(self, config: WorkerConfig):
        self.config = config
        self._producer: Optional[AIOKafkaProducer] = None
        self._started = False

        logger.info(
            "Initialized Kafka producer",
            extra={
                "bootstrap_servers": config.bootstrap_servers,
                "security_protocol": config.security_protocol,
            },
        )

    async def start(self) -> None:
        """
        Start the Kafka producer and establish connection.

        Raises:
            Exception: If producer fails to start or connect
        """
        if self._started:
            logger.warning("Producer already started, ignoring duplicate start call")
            return

        logger.info("Starting Kafka producer")

        self._producer = AIOKafkaProducer(
            bootstrap_servers=self.config.bootstrap_servers,
            acks=self.config.acks,
            **sasl_options(self.config),
        )

        await self._producer.start()
        self._started = True

        logger.info(
            "Kafka producer started successfully",
            extra={
                "bootstrap_servers": self.config.bootstrap_servers,
                "acks": self.config.acks,
            },
        )

    async def stop(self) -> None:
        """
        Stop the Kafka producer and cleanup resources.

        Flushes any pending messages and closes the connection gracefully.
        Safe to call multiple times.
        """
        if not self._started or self._producer is None:
            logger.debug("Producer not started or already stopped")
            return

        logger.info("Stopping Kafka producer")

        try:
            await self._producer.flush()
            await self._producer.stop()
            logger.info("Kafka producer stopped successfully")
        except Exception as e:
            logger.error(
                "Error stopping Kafka producer",
                extra={"error": str(e)},
                exc_info=True,
            )
            raise
        finally:
            self._producer = None
            self._started = False

    async def send(
        self,
        topic: str,
        key: str,
        value: Union[bytes, BaseModel],
        headers: Optional[List[Tuple[str, bytes]]] = None,
    ) -> RecordMetadata:
        """
        Send a single message to Kafka topic.

        Args:
            topic: Kafka topic name
            key: Message key (used for partitioning)
            value: Encoded message body, or a Pydantic model to serialize as JSON
            headers: Optional (name, bytes) header pairs

        Returns:
            RecordMetadata with topic, partition, offset information

        Raises:
            RuntimeError: If the producer has not been started
            Exception: If send operation fails
        """
        if not self._started or self._producer is None:
            raise RuntimeError("Producer not started. Call start() first.")

        if isinstance(value, BaseModel):
            value_bytes = value.model_dump_json(by_alias=True).encode("utf-8")
        else:
            value_bytes = value

        logger.debug(
            "Sending message to Kafka",
            extra={
                "topic": topic,
                "key": key,
                "value_size": len(value_bytes),
            },
        )

        try:
            metadata = await self._producer.send_and_wait(
                topic,
                key=key.encode("utf-8"),
                value=value_bytes,
                headers=headers,
            )
        except Exception as e:
            record_message_produced(topic, len(value_bytes), success=False)
            record_producer_error(topic, type(e).__name__)

            logger.error(
                "Failed to send message",
                extra={
                    "topic": topic,
                    "key": key,
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        record_message_produced(topic, len(value_bytes), success=True)

        logger.debug(
            "Message sent successfully",
            extra={
                "topic": metadata.topic,
                "partition": metadata.partition,
                "offset": metadata.offset,
            },
        )
        return metadata

    @property
    def is_started(self) -> bool:
        """Check if producer is started and ready to send messages."""
        return self._started and self._producer is not None


__all__ = [
    "BaseKafkaProducer",
]
