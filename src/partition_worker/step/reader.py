"""
Item reader over a shard's pre-materialized records.

Returns records one at a time in shard order. The shard is fully in memory
before reading begins, so read() never suspends.
"""

from collections import deque
from typing import Deque, Iterable, Union

from partition_worker.schemas.shard import RawRecord


class _EndOfStream:
    """Sentinel type returned once the reader is exhausted."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_STREAM"

    def __bool__(self) -> bool:
        return False


END_OF_STREAM = _EndOfStream()

ReadResult = Union[RawRecord, _EndOfStream]


class ItemReader:
    """
    FIFO reader over a shard's records.

    Not restartable: once exhausted, every later read() returns
    END_OF_STREAM. The source sequence is copied so the shard itself is
    never mutated.

    Usage:
        >>> reader = ItemReader(shard.records)
        >>> while (record := reader.read()) is not END_OF_STREAM:
        ...     handle(record)
    """

    def __init__(self, records: Iterable[RawRecord]):
        self._remaining: Deque[RawRecord] = deque(records)
        self._read_count = 0

    def read(self) -> ReadResult:
        """Remove and return the head record, or END_OF_STREAM."""
        if not self._remaining:
            return END_OF_STREAM
        self._read_count += 1
        return self._remaining.popleft()

    @property
    def read_count(self) -> int:
        """Number of records handed out so far."""
        return self._read_count

    @property
    def exhausted(self) -> bool:
        return not self._remaining


__all__ = ["END_OF_STREAM", "ItemReader", "ReadResult"]
