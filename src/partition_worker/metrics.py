"""
Prometheus metrics for partition worker monitoring.

Provides instrumentation for:
- Message production and consumption on the request/reply channels
- Shard outcomes and processed record counts
- Chunk write counts and durations
- Decode failures and lost status reports
"""

from prometheus_client import Counter, Histogram

# Message production metrics
messages_produced_total = Counter(
    "partition_messages_produced_total",
    "Total number of messages produced to Kafka topics",
    ["topic", "status"],  # status: success, error
)

messages_produced_bytes = Counter(
    "partition_messages_produced_bytes_total",
    "Total bytes of message data produced to Kafka topics",
    ["topic"],
)

producer_errors_total = Counter(
    "partition_producer_errors_total",
    "Total number of producer errors",
    ["topic", "error_type"],
)

# Message consumption metrics
messages_consumed_total = Counter(
    "partition_messages_consumed_total",
    "Total number of messages consumed from Kafka topics",
    ["topic", "consumer_group", "status"],  # status: success, error
)

processing_errors_total = Counter(
    "partition_processing_errors_total",
    "Total number of message processing errors by category",
    ["topic", "consumer_group", "error_category"],
)

# Step execution metrics
shards_processed_total = Counter(
    "partition_shards_processed_total",
    "Total number of shards processed by outcome",
    ["step_name", "outcome"],  # outcome: COMPLETED, FAILED
)

records_processed_total = Counter(
    "partition_records_processed_total",
    "Total number of records written to the store",
    ["step_name"],
)

chunks_written_total = Counter(
    "partition_chunks_written_total",
    "Total number of chunk writes by status",
    ["step_name", "status"],  # status: success, error
)

chunk_write_duration_seconds = Histogram(
    "partition_chunk_write_duration_seconds",
    "Time spent in a single sink write call",
    ["step_name"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# Envelope metrics
decode_failures_total = Counter(
    "partition_decode_failures_total",
    "Total number of inbound envelopes that could not be decoded",
    ["salvaged"],  # salvaged: true, false
)

status_reports_lost_total = Counter(
    "partition_status_reports_lost_total",
    "Total number of status reports that could not be encoded or published",
    ["reason"],  # reason: encode, publish
)


def record_message_produced(topic: str, message_bytes: int, success: bool = True) -> None:
    """
    Record a message production event.

    Args:
        topic: Kafka topic name
        message_bytes: Size of the message in bytes
        success: Whether the production was successful
    """
    status = "success" if success else "error"
    messages_produced_total.labels(topic=topic, status=status).inc()
    if success:
        messages_produced_bytes.labels(topic=topic).inc(message_bytes)


def record_producer_error(topic: str, error_type: str) -> None:
    """Record a producer error."""
    producer_errors_total.labels(topic=topic, error_type=error_type).inc()


def record_message_consumed(topic: str, consumer_group: str, success: bool = True) -> None:
    """Record a message consumption event."""
    status = "success" if success else "error"
    messages_consumed_total.labels(
        topic=topic, consumer_group=consumer_group, status=status
    ).inc()


def record_processing_error(topic: str, consumer_group: str, error_category: str) -> None:
    """Record a message processing error."""
    processing_errors_total.labels(
        topic=topic, consumer_group=consumer_group, error_category=error_category
    ).inc()


def record_shard_processed(step_name: str, outcome: str, processed_count: int) -> None:
    """
    Record a finished shard.

    Args:
        step_name: Step the shard ran under
        outcome: COMPLETED or FAILED
        processed_count: Records written before the step finished
    """
    shards_processed_total.labels(step_name=step_name, outcome=outcome).inc()
    records_processed_total.labels(step_name=step_name).inc(processed_count)


def record_chunk_written(
    step_name: str, chunk_size: int, duration_seconds: float, success: bool = True
) -> None:
    """
    Record one sink write call.

    Args:
        step_name: Step the chunk belongs to
        chunk_size: Number of entities in the chunk
        duration_seconds: Time spent in the sink call
        success: Whether the sink accepted the chunk
    """
    status = "success" if success else "error"
    chunks_written_total.labels(step_name=step_name, status=status).inc()
    chunk_write_duration_seconds.labels(step_name=step_name).observe(duration_seconds)


def record_decode_failure(salvaged: bool) -> None:
    """Record an undecodable inbound envelope."""
    decode_failures_total.labels(salvaged="true" if salvaged else "false").inc()


def record_status_report_lost(reason: str) -> None:
    """Record a status report that never reached the reply channel."""
    status_reports_lost_total.labels(reason=reason).inc()


__all__ = [
    # Metrics
    "messages_produced_total",
    "messages_produced_bytes",
    "producer_errors_total",
    "messages_consumed_total",
    "processing_errors_total",
    "shards_processed_total",
    "records_processed_total",
    "chunks_written_total",
    "chunk_write_duration_seconds",
    "decode_failures_total",
    "status_reports_lost_total",
    # Helper functions
    "record_message_produced",
    "record_producer_error",
    "record_message_consumed",
    "record_processing_error",
    "record_shard_processed",
    "record_chunk_written",
    "record_decode_failure",
    "record_status_report_lost",
]
