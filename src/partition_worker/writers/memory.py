"""
In-memory entity writer.

Dict-backed store with the same upsert semantics as the Delta writer. Used by
the worker in --dev mode and by tests.
"""

import uuid
from typing import Dict, List, Optional, Sequence, Set

from core.errors import WriteFailure
from core.logging.setup import get_logger
from partition_worker.schemas.entities import DomainEntity

logger = get_logger(__name__)


class InMemoryEntityWriter:
    """
    Upsert-by-identity store held in a dict.

    ``reject_ids`` makes write() fail with WriteFailure when a chunk contains
    any of those identities, leaving the store untouched (chunks are atomic).

    Usage:
        >>> writer = InMemoryEntityWriter()
        >>> await writer.write([DomainEntity(identity="f1", payload={})])
        >>> writer.get("f1").identity
        'f1'
    """

    def __init__(self, reject_ids: Optional[Set[str]] = None):
        self._entities: Dict[str, DomainEntity] = {}
        self.reject_ids: Set[str] = set(reject_ids or ())
        self.write_calls: List[int] = []

    async def write(self, entities: Sequence[DomainEntity]) -> None:
        self.write_calls.append(len(entities))

        rejected = [e.identity for e in entities if e.identity in self.reject_ids]
        if rejected:
            raise WriteFailure(
                f"Store rejected {len(rejected)} entities",
                entity_ids=rejected,
            )

        staged: Dict[str, DomainEntity] = {}
        for entity in entities:
            if entity.identity is None:
                entity = entity.model_copy(update={"identity": uuid.uuid4().hex})
            staged[entity.identity] = entity

        self._entities.update(staged)
        logger.debug(
            "Stored entity chunk in memory",
            extra={"record_count": len(staged)},
        )

    def get(self, identity: str) -> Optional[DomainEntity]:
        return self._entities.get(identity)

    def all(self) -> List[DomainEntity]:
        return list(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)
