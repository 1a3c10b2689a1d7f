"""Process-wide collaborators, built once at startup and passed by reference."""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from core.logging.setup import get_logger
from partition_worker.config import WorkerConfig
from partition_worker.envelope import EnvelopeTransformer
from partition_worker.profiles import ProfileResolver
from partition_worker.step.transformer import ItemTransformer
from partition_worker.writers import DeltaEntityWriter, InMemoryEntityWriter, ItemSink

logger = get_logger(__name__)


@dataclass
class WorkerContext:
    """
    Everything a worker process shares across shards.

    Nothing here is mutated per shard: engines, readers and step executions
    are created fresh for each message.
    """

    config: WorkerConfig
    sink: ItemSink
    envelope: EnvelopeTransformer = field(default_factory=EnvelopeTransformer)
    transformer: ItemTransformer = field(default_factory=ItemTransformer)
    shutdown_event: asyncio.Event = field(default_factory=asyncio.Event)
    profile_resolver: Optional[ProfileResolver] = None

    @classmethod
    def build(
        cls,
        config: WorkerConfig,
        dev: bool = False,
        profile_resolver: Optional[ProfileResolver] = None,
    ) -> "WorkerContext":
        """
        Build the context from configuration.

        Uses the in-memory sink in dev mode or when no entities table path
        is configured.
        """
        if dev or not config.entities_table_path:
            sink: ItemSink = InMemoryEntityWriter()
            logger.warning(
                "Using in-memory entity sink; entities are not persisted",
                extra={"step_name": config.step_name},
            )
        else:
            sink = DeltaEntityWriter(table_path=config.entities_table_path)

        return cls(config=config, sink=sink, profile_resolver=profile_resolver)

    @property
    def shutting_down(self) -> bool:
        return self.shutdown_event.is_set()


__all__ = ["WorkerContext"]
