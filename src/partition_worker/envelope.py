"""
Envelope transformer.

Inbound: decode a request message body into a Shard. The body is either a
JSON list of raw records or a wrapped shard object::

    {"shardId": "shard-7", "records": [...], "metadata": {...}}

Outbound: encode a finished step execution into the status message body.
Encoding goes through project_status(), an explicit projection that reads
exactly the reportable fields and nothing else, so execution-internal state
(timings, state machine position, sink handles) can never reach the wire.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from core.errors import DecodeFailure, EncodeFailure
from core.logging.setup import get_logger
from partition_worker.schemas.shard import Shard
from partition_worker.schemas.status import StepExecutionStatus

logger = get_logger(__name__)

SHARD_ID_KEYS = ("shardId", "shard_id")
RECORDS_KEYS = ("records", "data")
METADATA_KEY = "metadata"

Headers = Optional[Sequence[Tuple[str, bytes]]]


def generate_shard_id() -> str:
    """
    Generate a shard id for requests that arrive without one.

    Format: s-YYYYMMDD-HHMMSS-<8 hex chars>
    """
    now = datetime.now(timezone.utc)
    return f"s-{now.strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:8]}"


def _decode_headers(headers: Headers) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for key, value in headers or ():
        if value is None:
            continue
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        result[key] = value
    return result


def _first(mapping: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


def _shard_id_from(mapping: Mapping[str, Any]) -> Optional[str]:
    """First non-blank shard id under SHARD_ID_KEYS; blank values count as absent."""
    for key in SHARD_ID_KEYS:
        value = mapping.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _error_to_wire(error: Any) -> Dict[str, Any]:
    return {
        "errorType": error.error_type,
        "message": error.message,
        "category": error.category,
        "chunkIndex": error.chunk_index,
        "entityIds": list(error.entity_ids),
    }


def project_status(status: Any) -> Dict[str, Any]:
    """
    Project a step execution onto its wire representation.

    Accepts a StepExecutionStatus or any object exposing the same attributes
    (e.g. a finished StepExecution). Only shardId, processedCount,
    failureCount, outcome and errors are emitted.

    Raises:
        EncodeFailure: If a reportable field is missing or has no value
    """
    shard_id = getattr(status, "shard_id", None)
    try:
        outcome = status.outcome
        if outcome is None:
            raise ValueError("step execution has not finished")
        return {
            "shardId": status.shard_id,
            "processedCount": int(status.processed_count),
            "failureCount": int(status.failure_count),
            "outcome": getattr(outcome, "value", outcome),
            "errors": [_error_to_wire(e) for e in status.errors],
        }
    except (AttributeError, TypeError, ValueError) as e:
        raise EncodeFailure(
            f"Cannot project status for shard {shard_id}: {e}",
            shard_id=shard_id,
            cause=e,
        ) from e


class EnvelopeTransformer:
    """
    Converts request messages to Shards and step statuses to reply messages.

    Stateless; one instance is shared by every shard the process handles.
    """

    def decode(self, value: Optional[bytes], headers: Headers = None) -> Shard:
        """
        Decode a request message into a Shard.

        The shard id is taken from the shard_id/shardId header, then from the
        wrapped body, and generated when neither carries one. Blank ids count
        as absent. Header values override wrapped-body metadata.

        Raises:
            DecodeFailure: If the body is not a record list or wrapped shard.
                shard_id is set when one could be salvaged.
        """
        header_values = _decode_headers(headers)
        shard_id = _shard_id_from(header_values)

        if not value:
            raise DecodeFailure("Empty request message", shard_id=shard_id)

        try:
            body = json.loads(value)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeFailure(
                f"Request body is not valid JSON: {e}",
                shard_id=shard_id,
                cause=e,
            ) from e

        metadata: Dict[str, Any] = {}
        if isinstance(body, list):
            records = body
        elif isinstance(body, dict):
            if shard_id is None:
                shard_id = _shard_id_from(body)
            records = _first(body, RECORDS_KEYS)
            if records is None:
                records = []
            body_metadata = body.get(METADATA_KEY) or {}
            if not isinstance(body_metadata, dict):
                raise DecodeFailure(
                    "Shard metadata must be an object",
                    shard_id=shard_id,
                )
            metadata.update(body_metadata)
        else:
            raise DecodeFailure(
                f"Request body must be a list or object, got {type(body).__name__}",
                shard_id=shard_id,
            )

        if not isinstance(records, list):
            raise DecodeFailure(
                f"Shard records must be a list, got {type(records).__name__}",
                shard_id=shard_id,
            )
        bad = [i for i, r in enumerate(records) if not isinstance(r, dict)]
        if bad:
            raise DecodeFailure(
                f"Shard records must be objects; {len(bad)} invalid, first at index {bad[0]}",
                shard_id=shard_id,
                context={"invalid_indexes": bad[:20]},
            )

        metadata.update(
            {k: v for k, v in header_values.items() if k not in SHARD_ID_KEYS}
        )

        generated = shard_id is None
        if generated:
            shard_id = generate_shard_id()

        try:
            shard = Shard(shard_id=shard_id, records=tuple(records), metadata=metadata)
        except ValidationError as e:
            raise DecodeFailure(
                f"Invalid shard envelope: {e.errors()[0]['msg']}",
                shard_id=None,
                cause=e,
            ) from e

        logger.debug(
            "Decoded shard envelope",
            extra={
                "shard_id": shard.shard_id,
                "record_count": len(shard),
                "generated_shard_id": generated,
            },
        )
        return shard

    def encode(self, status: Union[StepExecutionStatus, Any]) -> bytes:
        """
        Encode a finished step execution as the reply message body.

        Raises:
            EncodeFailure: If the status cannot be projected or serialized
        """
        projection = project_status(status)
        try:
            return json.dumps(projection).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodeFailure(
                f"Cannot serialize status for shard {projection.get('shardId')}: {e}",
                shard_id=projection.get("shardId"),
                cause=e,
            ) from e

    def decode_status(self, value: bytes) -> StepExecutionStatus:
        """
        Parse a reply message body back into a StepExecutionStatus.

        Used by coordinators and tests; unknown fields are ignored.

        Raises:
            DecodeFailure: If the body is not a valid status
        """
        try:
            return StepExecutionStatus.model_validate_json(value)
        except ValidationError as e:
            raise DecodeFailure(f"Invalid status message: {e}", cause=e) from e


def shard_headers(shard_id: str) -> List[Tuple[str, bytes]]:
    """Kafka headers carried on a reply message."""
    return [("shard_id", shard_id.encode("utf-8"))]


__all__ = [
    "EnvelopeTransformer",
    "generate_shard_id",
    "project_status",
    "shard_headers",
]
