"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from core.logging.context import get_log_context


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        "shard_id",
        "step_name",
        "outcome",
        "state",
        "chunk_index",
        "chunk_size",
        "record_count",
        "processed_count",
        "failure_count",
        "entity_ids",
        "duration_ms",
        "error",
        "error_type",
        "error_category",
        "error_message",
        # Transport
        "topic",
        "partition",
        "offset",
        "key",
        "group_id",
        "value_size",
        "request_topic",
        "reply_topic",
        # Store
        "table_path",
        "rows_written",
        "rows_inserted",
        "rows_updated",
    ]

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        ctx = get_log_context()
        for key in ("domain", "stage", "worker_id", "shard_id"):
            if ctx[key]:
                log_entry[key] = ctx[key]

        # Source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Includes context when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
        ]

        if ctx["domain"]:
            parts.append(f"[{ctx['domain']}]")
        if ctx["stage"]:
            parts.append(f"[{ctx['stage']}]")

        prefix = " - ".join(parts)

        shard_id = getattr(record, "shard_id", None) or ctx["shard_id"]
        if shard_id:
            return f"{prefix} - [{shard_id}] {record.getMessage()}"

        return f"{prefix} - {record.getMessage()}"
