"""
Item sinks for finished chunks.

Provides:
- ItemSink protocol (upsert by identity, WriteFailure on rejection)
- DeltaEntityWriter (Delta Lake merge on identity)
- InMemoryEntityWriter (dev mode and tests)
"""

from partition_worker.writers.base import ItemSink
from partition_worker.writers.delta_entities import DeltaEntityWriter
from partition_worker.writers.memory import InMemoryEntityWriter

__all__ = ["DeltaEntityWriter", "InMemoryEntityWriter", "ItemSink"]
