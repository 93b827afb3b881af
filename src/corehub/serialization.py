"""EnvelopeSerializer: JSON roundtrip for MessageEnvelope."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .envelope import MessageEnvelope
from .exceptions import EnvelopeSerializationError


def _json_serializer(obj: Any) -> Any:
    """Serialize datetime and other non-JSON types."""
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class EnvelopeSerializer:
    """Serialize/deserialize MessageEnvelope to/from JSON bytes (camelCase keys)."""

    def serialize(self, envelope: MessageEnvelope) -> bytes:
        """Encode envelope to JSON bytes."""
        try:
            return json.dumps(envelope.to_wire(), default=_json_serializer).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EnvelopeSerializationError(str(e)) from e

    def deserialize(self, raw: bytes) -> MessageEnvelope:
        """Decode JSON bytes to MessageEnvelope."""
        try:
            data = json.loads(raw.decode("utf-8"))
            return MessageEnvelope.model_validate(data)
        except (UnicodeDecodeError, json.JSONDecodeError, PydanticValidationError) as e:
            raise EnvelopeSerializationError(str(e)) from e
