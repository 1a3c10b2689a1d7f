"""
Chunked step execution: reader, transformer and engine.

    ItemReader        - FIFO over a shard's records, END_OF_STREAM when done
    ItemTransformer   - raw record -> DomainEntity (total)
    ChunkedStepEngine - reader -> transformer -> sink in bounded chunks
"""

from partition_worker.step.engine import (
    ChunkedStepEngine,
    DEFAULT_CHUNK_SIZE,
    StepExecution,
    StepState,
)
from partition_worker.step.reader import END_OF_STREAM, ItemReader
from partition_worker.step.transformer import ItemTransformer, transform_record

__all__ = [
    "ChunkedStepEngine",
    "DEFAULT_CHUNK_SIZE",
    "END_OF_STREAM",
    "ItemReader",
    "ItemTransformer",
    "StepExecution",
    "StepState",
    "transform_record",
]
