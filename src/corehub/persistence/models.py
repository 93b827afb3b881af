"""SQLAlchemy table models for message logs, payloads and subscriptions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    BigInteger,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..records import MAX_ERROR_LENGTH, MessageStatus, SubscriptionStatus
from .types import JSONType, UTCDateTime


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all corehub tables."""


class MessageLogModel(Base):
    """One row per published message id; the unique key enforces idempotency."""

    __tablename__ = "message_log"

    id: Mapped[int] = mapped_column(
        Integer().with_variant(BigInteger, "postgresql"),
        primary_key=True,
        autoincrement=True,
    )
    message_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    channel: Mapped[str] = mapped_column(String(255))
    routing_key: Mapped[str] = mapped_column(String(255))
    status: Mapped[MessageStatus] = mapped_column(
        Enum(MessageStatus, name="message_status"), default=MessageStatus.PUBLISHING
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    correlation_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    error_message: Mapped[str | None] = mapped_column(String(MAX_ERROR_LENGTH), nullable=True)
    produced_at: Mapped[datetime] = mapped_column(UTCDateTime)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)

    __table_args__ = (Index("ix_message_log_status_created", "status", "created_at"),)


class PayloadModel(Base):
    """Immutable payload document, one-to-one with ``message_log``."""

    __tablename__ = "payload_store"

    message_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("message_log.message_id", ondelete="CASCADE"),
        primary_key=True,
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType)
    payload_kind: Mapped[str] = mapped_column(String(20), default="document")
    schema_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)


class SubscriptionModel(Base):
    """
    Webhook subscription row.

    ``version`` is bumped by every write so concurrent updates of the same
    row stay serialized at the database.
    """

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    webhook_url: Mapped[str] = mapped_column(String(500))
    squad_name: Mapped[str] = mapped_column(String(100), index=True)
    topic: Mapped[str] = mapped_column(String(200))
    event_name: Mapped[str] = mapped_column(String(100))
    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus, name="subscription_status"),
        default=SubscriptionStatus.ACTIVE,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(String(MAX_ERROR_LENGTH), nullable=True)
    last_successful_delivery: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("webhook_url", "topic", name="uq_subscriptions_webhook_topic"),
    )
