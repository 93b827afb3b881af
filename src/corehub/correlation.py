"""Correlation ID management across publish and dispatch boundaries."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from contextvars import ContextVar

CORRELATION_HEADER = "X-Correlation-Id"
SUBSCRIPTION_HEADER = "X-Subscription-Id"

# ContextVar for correlation tracking across async boundaries.
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set correlation ID in context."""
    _correlation_id.set(correlation_id)


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def header_lookup(headers: Mapping[str, object] | None, name: str) -> str | None:
    """Case-insensitive header lookup over a mapping of raw header values.

    AMQP headers may arrive as ``bytes``; they are decoded as UTF-8.
    """
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if str(key).lower() != wanted or value is None:
            continue
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        text = str(value).strip()
        return text or None
    return None
