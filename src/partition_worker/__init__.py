"""
Remote-partitioning shard worker.

Receives shard requests from a coordinator over Kafka, runs a chunked
read -> transform -> write step over each shard, and reports a step
execution status on a reply topic.

Modules:
    envelope  - request decoding and status projection/encoding
    step      - item reader, item transformer, chunked step engine
    writers   - item sinks (Delta Lake, in-memory)
    workers   - PartitionStepWorker (Kafka request/reply loop)
"""

__version__ = "0.1.0"
