"""
Delta Lake writer for the entities table.

Writes DomainEntity chunks with merge (upsert) on ``identity``:
- Matching rows: update every column except identity and created_at
- Non-matching rows: insert
- Duplicate identities within one chunk: last occurrence wins

Entities without identity get a generated uuid4 hex identity before the
merge, so they are always inserted as new rows.

A missing table is created by appending an empty frame and the first chunk
is then merged like any other, so concurrent first writes never replace
each other.
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import polars as pl
from deltalake import DeltaTable, write_deltalake

from core.errors import WriteFailure
from core.logging.setup import get_logger
from partition_worker.schemas.entities import DomainEntity

logger = get_logger(__name__)

MERGE_KEY = "identity"

ENTITIES_SCHEMA = {
    "identity": pl.Utf8,
    "content_type": pl.Utf8,
    "owner_id": pl.Utf8,
    "payload": pl.Utf8,
    "created_at": pl.Datetime("us", "UTC"),
    "updated_at": pl.Datetime("us", "UTC"),
}


class DeltaEntityWriter:
    """
    Item sink backed by a Delta table.

    Blocking Delta I/O runs in a worker thread via asyncio.to_thread so the
    event loop keeps serving other shards. Any store error is raised as
    WriteFailure carrying the chunk's identities.

    Usage:
        >>> writer = DeltaEntityWriter(table_path="abfss://.../file_entities")
        >>> await writer.write(entities)
    """

    def __init__(
        self,
        table_path: str,
        storage_options: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Delta entity writer.

        Args:
            table_path: Full path (local, abfss://, s3://) to the entities table
            storage_options: Options passed through to deltalake
        """
        if not table_path:
            raise ValueError("table_path is required")

        self.table_path = table_path
        self.storage_options = storage_options or {}

        logger.info(
            "Initialized DeltaEntityWriter",
            extra={"table_path": table_path},
        )

    async def write(self, entities: Sequence[DomainEntity]) -> None:
        """
        Upsert one chunk of entities.

        Raises:
            WriteFailure: If the store rejects the chunk
        """
        if not entities:
            return

        df = self._entities_to_dataframe(entities)
        identities = df[MERGE_KEY].to_list()

        try:
            rows = await asyncio.to_thread(self._merge, df)
        except Exception as e:
            raise WriteFailure(
                f"Delta merge into {self.table_path} failed",
                entity_ids=identities,
                cause=e,
                context={"table_path": self.table_path},
            ) from e

        logger.info(
            "Wrote entity chunk to Delta",
            extra={
                "table_path": self.table_path,
                "record_count": len(entities),
                "rows_written": rows,
            },
        )

    def _entities_to_dataframe(self, entities: Sequence[DomainEntity]) -> pl.DataFrame:
        """
        Convert entities to a Polars DataFrame matching the table schema.

        Payload is stored as a JSON string column so arbitrary payload shapes
        share one schema.
        """
        now = datetime.now(timezone.utc)

        rows: List[dict] = []
        for entity in entities:
            rows.append(
                {
                    "identity": entity.identity or uuid.uuid4().hex,
                    "content_type": entity.content_type,
                    "owner_id": entity.owner_id,
                    "payload": json.dumps(entity.payload, sort_keys=True, default=str),
                    "created_at": now,
                    "updated_at": now,
                }
            )

        df = pl.DataFrame(rows, schema=ENTITIES_SCHEMA)
        return df.unique(subset=[MERGE_KEY], keep="last", maintain_order=True)

    def _table_exists(self) -> bool:
        try:
            DeltaTable(self.table_path, storage_options=self.storage_options)
            return True
        except Exception:
            return False

    def _create_table(self, df: pl.DataFrame) -> None:
        """Create the table with an empty append. Losing a creation race is not an error."""
        try:
            write_deltalake(
                self.table_path,
                df.head(0).to_arrow(),
                mode="append",
                storage_options=self.storage_options,
            )
        except Exception:
            if not self._table_exists():
                raise
            logger.debug(
                "Table created concurrently",
                extra={"table_path": self.table_path},
            )
            return

        logger.info("Created entities table", extra={"table_path": self.table_path})

    def _merge(self, df: pl.DataFrame) -> int:
        """Merge DataFrame into the table, creating it on first write."""
        if not self._table_exists():
            self._create_table(df)

        update_cols = [c for c in df.columns if c not in (MERGE_KEY, "created_at")]
        dt = DeltaTable(self.table_path, storage_options=self.storage_options)

        result = (
            dt.merge(
                source=df.to_arrow(),
                predicate=f"target.{MERGE_KEY} = source.{MERGE_KEY}",
                source_alias="source",
                target_alias="target",
            )
            .when_matched_update({c: f"source.{c}" for c in update_cols})
            .when_not_matched_insert({c: f"source.{c}" for c in df.columns})
            .execute()
        )

        rows_updated = result.get("num_target_rows_updated", 0) or 0
        rows_inserted = result.get("num_target_rows_inserted", 0) or 0
        logger.debug(
            "Merge complete",
            extra={
                "table_path": self.table_path,
                "rows_inserted": rows_inserted,
                "rows_updated": rows_updated,
            },
        )
        return rows_inserted + rows_updated


__all__ = ["DeltaEntityWriter", "ENTITIES_SCHEMA", "MERGE_KEY"]
