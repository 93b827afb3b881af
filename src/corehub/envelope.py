"""MessageEnvelope: canonical wire wrapper for published messages."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_WIRE_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
)


def _not_blank(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be blank")
    return value


class Destination(BaseModel):
    """Logical channel plus the event name used for subscription matching."""

    model_config = _WIRE_CONFIG

    channel: str
    event_name: str

    @field_validator("channel", "event_name")
    @classmethod
    def _check_blank(cls, value: str) -> str:
        return _not_blank(value)


class MessageEnvelope(BaseModel):
    """Immutable wrapper for messages over the wire.

    Serialized with camelCase keys (``messageId``, ``destination.eventName``)
    so publishers and webhook receivers see a stable JSON shape. Everything
    except ``metadata`` is required.
    """

    model_config = _WIRE_CONFIG

    message_id: str
    timestamp: datetime
    source: str
    destination: Destination
    metadata: dict[str, str] = Field(default_factory=dict)
    payload: Any = Field(..., description="Structured document or scalar value")

    @field_validator("message_id", "source")
    @classmethod
    def _check_blank(cls, value: str) -> str:
        return _not_blank(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_none_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("payload")
    @classmethod
    def _payload_required(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("payload is required")
        return value

    @property
    def channel(self) -> str:
        return self.destination.channel

    @property
    def event_name(self) -> str:
        return self.destination.event_name

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-compatible camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)
