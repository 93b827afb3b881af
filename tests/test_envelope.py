"""Tests for MessageEnvelope, EnvelopeSerializer and payload tagging."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from corehub.envelope import MessageEnvelope
from corehub.exceptions import EnvelopeSerializationError
from corehub.payload import ScalarPayload, StructuredPayload, normalize_payload, restore_payload
from corehub.records import PayloadRecord
from corehub.serialization import EnvelopeSerializer

from conftest import make_envelope

WIRE = {
    "messageId": "msg-1",
    "timestamp": "2024-05-01T12:00:00Z",
    "source": "checkout-service",
    "destination": {"channel": "payments.order.created", "eventName": "orderCreated"},
    "payload": {"orderId": 42},
}


def test_envelope_parses_camel_case_wire_format() -> None:
    envelope = MessageEnvelope.model_validate(WIRE)
    assert envelope.message_id == "msg-1"
    assert envelope.channel == "payments.order.created"
    assert envelope.event_name == "orderCreated"
    assert envelope.metadata == {}


def test_to_wire_uses_camel_case() -> None:
    wire = make_envelope(schemaVersion="2").to_wire()
    assert wire["messageId"] == "msg-1"
    assert wire["destination"] == {
        "channel": "payments.order.created",
        "eventName": "orderCreated",
    }
    assert wire["metadata"] == {"schemaVersion": "2"}
    assert isinstance(wire["timestamp"], str)


@pytest.mark.parametrize("missing", ["messageId", "timestamp", "source", "destination", "payload"])
def test_required_fields(missing: str) -> None:
    data = {k: v for k, v in WIRE.items() if k != missing}
    with pytest.raises(ValidationError):
        MessageEnvelope.model_validate(data)


def test_blank_identifiers_are_rejected() -> None:
    with pytest.raises(ValidationError):
        MessageEnvelope.model_validate({**WIRE, "messageId": "  "})
    with pytest.raises(ValidationError):
        MessageEnvelope.model_validate(
            {**WIRE, "destination": {"channel": "", "eventName": "orderCreated"}}
        )


def test_null_payload_is_rejected() -> None:
    with pytest.raises(ValidationError):
        MessageEnvelope.model_validate({**WIRE, "payload": None})


def test_null_metadata_becomes_empty() -> None:
    envelope = MessageEnvelope.model_validate({**WIRE, "metadata": None})
    assert envelope.metadata == {}


def test_envelope_is_immutable() -> None:
    envelope = make_envelope()
    with pytest.raises(ValidationError):
        envelope.source = "other"  # type: ignore[misc]


def test_serializer_produces_json_bytes() -> None:
    raw = EnvelopeSerializer().serialize(make_envelope())
    data = json.loads(raw)
    assert data["messageId"] == "msg-1"
    assert data["payload"] == {"orderId": 42}


def test_serializer_reads_wire_bytes() -> None:
    envelope = EnvelopeSerializer().deserialize(json.dumps(WIRE).encode())
    assert envelope.event_name == "orderCreated"


@pytest.mark.parametrize("raw", [b"not json", b"\xff\xfe", b'{"messageId": "x"}'])
def test_serializer_rejects_bad_input(raw: bytes) -> None:
    with pytest.raises(EnvelopeSerializationError):
        EnvelopeSerializer().deserialize(raw)


def test_normalize_document_payload() -> None:
    payload = normalize_payload({"orderId": 42})
    assert isinstance(payload, StructuredPayload)
    assert payload.to_document() == {"orderId": 42}


@pytest.mark.parametrize("value", ["hello", 42, 1.5, True, [1, 2]])
def test_normalize_scalar_payload(value: object) -> None:
    payload = normalize_payload(value)
    assert isinstance(payload, ScalarPayload)
    assert payload.to_document() == {"value": value}


def test_payload_record_restores_scalar() -> None:
    record = PayloadRecord.from_payload("msg-1", normalize_payload("hello"), schema_version="1")
    assert record.payload == {"value": "hello"}
    assert record.payload_kind == "scalar"
    assert record.schema_version == "1"
    restored = record.restore()
    assert isinstance(restored, ScalarPayload)
    assert restored.value == "hello"


def test_restore_document_payload() -> None:
    restored = restore_payload("document", {"a": 1})
    assert isinstance(restored, StructuredPayload)
    assert restored.document == {"a": 1}
