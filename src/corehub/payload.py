"""Envelope payloads as a tagged union of structured documents and scalars.

Persistence stores documents only, so a scalar payload is wrapped as
``{"value": <scalar>}`` and tagged ``scalar``; :meth:`ScalarPayload.value`
restores the original on the way back out.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

SCALAR_KEY = "value"


class StructuredPayload(BaseModel):
    """A JSON object payload, persisted as-is."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["document"] = "document"
    document: dict[str, Any]

    def to_document(self) -> dict[str, Any]:
        return dict(self.document)


class ScalarPayload(BaseModel):
    """Any non-object payload (string, number, list, bool)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["scalar"] = "scalar"
    value: Any

    def to_document(self) -> dict[str, Any]:
        return {SCALAR_KEY: self.value}


Payload = Annotated[Union[StructuredPayload, ScalarPayload], Field(discriminator="kind")]

_payload_adapter: TypeAdapter[Payload] = TypeAdapter(Payload)


def normalize_payload(raw: Any) -> StructuredPayload | ScalarPayload:
    """Tag a raw envelope payload."""
    if isinstance(raw, Mapping):
        return StructuredPayload(document={str(k): v for k, v in raw.items()})
    return ScalarPayload(value=raw)


def restore_payload(kind: str, document: dict[str, Any]) -> StructuredPayload | ScalarPayload:
    """Rebuild the tagged payload from its persisted form."""
    if kind == "scalar":
        return _payload_adapter.validate_python({"kind": kind, "value": document.get(SCALAR_KEY)})
    return _payload_adapter.validate_python({"kind": kind, "document": document})
