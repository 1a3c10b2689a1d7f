"""Item sink contract shared by all entity writers."""

from typing import Protocol, Sequence, runtime_checkable

from partition_worker.schemas.entities import DomainEntity


@runtime_checkable
class ItemSink(Protocol):
    """
    Persists one chunk of entities to the durable store.

    Contract:
        - Upsert by identity: an entity whose identity matches a stored one
          replaces it
        - Entities with unset identity are stored as new records; the store
          layer generates their identity
        - The chunk is accepted as a whole or write() raises WriteFailure
          carrying the offending identities where determinable
    """

    async def write(self, entities: Sequence[DomainEntity]) -> None:
        ...
