"""
Item transformer: raw record -> DomainEntity.

A total function. Missing keys fall back to conservative defaults instead of
raising:

- identity, content_type, owner_id: value of their key, else unset
- payload: value of the payload key, else the entire raw record

Extracted fields, the payload included, are coerced to strings so the store
sees a uniform schema. The whole-record fallback stays a mapping. The coercion
is lossy but deterministic: booleans and nested structures are rendered as
JSON (keys sorted), everything else via str().
"""

import json
from typing import Any, Mapping, Optional

from partition_worker.schemas.entities import DomainEntity

IDENTITY_KEY = "id"
CONTENT_TYPE_KEY = "mimeType"
OWNER_KEY = "userId"
PAYLOAD_KEY = "content"


def coerce_to_string(value: Any) -> Optional[str]:
    """Render a field value as a string; None stays unset."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, dict, list, tuple)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


class ItemTransformer:
    """
    Maps raw records onto DomainEntity using configurable key names.

    Usage:
        >>> transformer = ItemTransformer()
        >>> entity = transformer.transform({"id": 7, "mimeType": "text/plain"})
        >>> entity.identity
        '7'
    """

    def __init__(
        self,
        identity_key: str = IDENTITY_KEY,
        content_type_key: str = CONTENT_TYPE_KEY,
        owner_key: str = OWNER_KEY,
        payload_key: str = PAYLOAD_KEY,
    ):
        self.identity_key = identity_key
        self.content_type_key = content_type_key
        self.owner_key = owner_key
        self.payload_key = payload_key

    def transform(self, record: Mapping[str, Any]) -> DomainEntity:
        payload = coerce_to_string(record.get(self.payload_key))
        if payload is None:
            payload = dict(record)

        return DomainEntity(
            identity=coerce_to_string(record.get(self.identity_key)),
            content_type=coerce_to_string(record.get(self.content_type_key)),
            owner_id=coerce_to_string(record.get(self.owner_key)),
            payload=payload,
        )

    __call__ = transform


def transform_record(record: Mapping[str, Any]) -> DomainEntity:
    """Transform with the default key names."""
    return _DEFAULT_TRANSFORMER.transform(record)


_DEFAULT_TRANSFORMER = ItemTransformer()


__all__ = [
    "CONTENT_TYPE_KEY",
    "IDENTITY_KEY",
    "ItemTransformer",
    "OWNER_KEY",
    "PAYLOAD_KEY",
    "coerce_to_string",
    "transform_record",
]
