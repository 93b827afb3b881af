"""Persisted records: message log entries, payloads and subscriptions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .payload import ScalarPayload, StructuredPayload, restore_payload

MAX_ERROR_LENGTH = 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def truncate_error(error: str | None) -> str | None:
    if error is None:
        return None
    return error[:MAX_ERROR_LENGTH]


class MessageStatus(str, enum.Enum):
    PUBLISHING = "PUBLISHING"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


@dataclass
class MessageLogEntry:
    """Publish-side status row; ``message_id`` is the idempotency key."""

    message_id: str
    channel: str
    routing_key: str
    produced_at: datetime
    status: MessageStatus = MessageStatus.PUBLISHING
    attempts: int = 0
    correlation_id: str | None = None
    error_message: str | None = None
    published_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)

    def mark_published(self, at: datetime | None = None) -> None:
        self.status = MessageStatus.PUBLISHED
        self.attempts += 1
        self.error_message = None
        self.published_at = at or utcnow()

    def mark_failed(self, error: str) -> None:
        self.status = MessageStatus.FAILED
        self.attempts += 1
        self.error_message = truncate_error(error)


@dataclass(frozen=True)
class PayloadRecord:
    """Immutable copy of a message payload, one-to-one with its log entry."""

    message_id: str
    payload: dict[str, Any]
    payload_kind: str = "document"
    schema_version: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_payload(
        cls,
        message_id: str,
        payload: StructuredPayload | ScalarPayload,
        *,
        schema_version: str | None = None,
        created_at: datetime | None = None,
    ) -> PayloadRecord:
        return cls(
            message_id=message_id,
            payload=payload.to_document(),
            payload_kind=payload.kind,
            schema_version=schema_version,
            created_at=created_at or utcnow(),
        )

    def restore(self) -> StructuredPayload | ScalarPayload:
        return restore_payload(self.payload_kind, self.payload)


@dataclass
class Subscription:
    """A webhook registered for a topic pattern and an event pattern.

    ``failed_attempts`` counts consecutive terminal delivery failures; any
    successful delivery resets it.
    """

    id: str
    webhook_url: str
    squad_name: str
    topic: str
    event_name: str
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    failed_attempts: int = 0
    last_error: str | None = None
    last_successful_delivery: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status is SubscriptionStatus.ACTIVE

    def record_success(self, at: datetime | None = None) -> None:
        now = at or utcnow()
        self.failed_attempts = 0
        self.last_error = None
        self.last_successful_delivery = now
        self.updated_at = now

    def record_failure(self, error: str, at: datetime | None = None) -> None:
        self.failed_attempts += 1
        self.last_error = truncate_error(error)
        self.updated_at = at or utcnow()


@dataclass(frozen=True)
class SubscriptionSummary:
    topic: str
    event_name: str
    squad_name: str
    webhook_url: str

    @classmethod
    def of(cls, subscription: Subscription) -> SubscriptionSummary:
        return cls(
            topic=subscription.topic,
            event_name=subscription.event_name,
            squad_name=subscription.squad_name,
            webhook_url=subscription.webhook_url,
        )


@dataclass(frozen=True)
class SubscriptionListing:
    """Overview of every active subscription."""

    total_subscriptions: int
    active_subscriptions: int
    events: list[SubscriptionSummary]
