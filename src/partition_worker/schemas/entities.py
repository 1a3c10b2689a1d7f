"""
Domain entity schema.

The normalized unit of work persisted by the item sink. Identity is the
natural key for upserts; it may be unset here and is assigned by the store
layer before the entity is written.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class DomainEntity(BaseModel):
    """Schema for one normalized record of a shard.

    Attributes:
        identity: Natural key for upsert (None until the store assigns one)
        content_type: Content type of the item (e.g. a MIME type)
        owner_id: Identifier of the owning user
        payload: Item payload, or the whole raw record when it had none

    Example:
        >>> entity = DomainEntity(
        ...     identity="f1",
        ...     content_type="text/plain",
        ...     owner_id="u1",
        ...     payload={"id": "f1", "mimeType": "text/plain", "userId": "u1"},
        ... )
    """

    model_config = ConfigDict(frozen=True)

    identity: Optional[str] = Field(
        default=None,
        description="Natural key for upsert; unset when the raw record had none",
    )
    content_type: Optional[str] = Field(
        default=None,
        description="Content type of the item",
    )
    owner_id: Optional[str] = Field(
        default=None,
        description="Identifier of the owning user",
    )
    payload: Any = Field(
        default=None,
        description="Item payload, or the entire raw record when absent",
    )
