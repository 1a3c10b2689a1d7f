"""
Kafka workers for the partition pipeline.

Workers:
    PartitionStepWorker - request topic -> chunked step -> reply topic
"""

from partition_worker.workers.partition_worker import PartitionStepWorker

__all__ = ["PartitionStepWorker"]
