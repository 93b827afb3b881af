"""Dict-backed message and subscription stores for tests and local runs."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from ..exceptions import DuplicateMessageError, DuplicateSubscriptionError, PersistenceError
from ..records import utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from ..records import (
        MessageLogEntry,
        MessageStatus,
        PayloadRecord,
        Subscription,
        SubscriptionStatus,
    )


class InMemoryMessageStore:
    """In-memory implementation of ``IMessageStore``.

    Entries are copied on the way in and out, so callers never share state
    with the store.
    """

    def __init__(self) -> None:
        self._entries: dict[str, MessageLogEntry] = {}
        self._payloads: dict[str, PayloadRecord] = {}

    async def create(self, entry: MessageLogEntry, payload: PayloadRecord) -> None:
        if entry.message_id in self._entries:
            raise DuplicateMessageError(entry.message_id)
        self._entries[entry.message_id] = dataclasses.replace(entry)
        self._payloads[entry.message_id] = payload

    async def get(self, message_id: str) -> MessageLogEntry | None:
        entry = self._entries.get(message_id)
        return dataclasses.replace(entry) if entry is not None else None

    async def update(self, entry: MessageLogEntry) -> None:
        if entry.message_id not in self._entries:
            raise PersistenceError(f"message {entry.message_id!r} is not recorded")
        self._entries[entry.message_id] = dataclasses.replace(entry)

    async def get_payload(self, message_id: str) -> PayloadRecord | None:
        return self._payloads.get(message_id)

    async def find_by_status(
        self, status: MessageStatus, limit: int = 100
    ) -> list[MessageLogEntry]:
        found = [e for e in self._entries.values() if e.status == status]
        found.sort(key=lambda e: e.created_at)
        return [dataclasses.replace(e) for e in found[:limit]]

    async def count_by_status(self, status: MessageStatus) -> int:
        return sum(1 for e in self._entries.values() if e.status == status)

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._entries.clear()
        self._payloads.clear()

    def __len__(self) -> int:
        return len(self._entries)


class InMemorySubscriptionStore:
    """In-memory implementation of ``ISubscriptionStore``."""

    def __init__(self) -> None:
        self._rows: dict[str, Subscription] = {}

    async def save(self, subscription: Subscription) -> Subscription:
        for row in self._rows.values():
            if (
                row.id != subscription.id
                and row.webhook_url == subscription.webhook_url
                and row.topic == subscription.topic
            ):
                raise DuplicateSubscriptionError(subscription.webhook_url, subscription.topic)
        self._rows[subscription.id] = dataclasses.replace(subscription)
        return dataclasses.replace(subscription)

    async def get(self, subscription_id: str) -> Subscription | None:
        row = self._rows.get(subscription_id)
        return dataclasses.replace(row) if row is not None else None

    async def find_by_status(self, status: SubscriptionStatus) -> list[Subscription]:
        return [dataclasses.replace(r) for r in self._rows.values() if r.status == status]

    async def find_by_squad(self, squad_name: str) -> list[Subscription]:
        return [dataclasses.replace(r) for r in self._rows.values() if r.squad_name == squad_name]

    async def exists_by_webhook_and_topic(self, webhook_url: str, topic: str) -> bool:
        return any(r.webhook_url == webhook_url and r.topic == topic for r in self._rows.values())

    async def count_by_squad_and_status(
        self, squad_name: str, status: SubscriptionStatus
    ) -> int:
        return sum(
            1 for r in self._rows.values() if r.squad_name == squad_name and r.status == status
        )

    async def update_status(self, subscription_id: str, status: SubscriptionStatus) -> bool:
        row = self._rows.get(subscription_id)
        if row is None:
            return False
        row.status = status
        row.updated_at = utcnow()
        return True

    async def record_delivery_success(self, subscription_id: str, at: datetime) -> bool:
        row = self._rows.get(subscription_id)
        if row is None:
            return False
        row.record_success(at)
        return True

    async def record_delivery_failure(
        self, subscription_id: str, error: str, at: datetime
    ) -> bool:
        row = self._rows.get(subscription_id)
        if row is None:
            return False
        row.record_failure(error, at)
        return True

    async def delete(self, subscription_id: str) -> bool:
        return self._rows.pop(subscription_id, None) is not None

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._rows.clear()

    def __len__(self) -> int:
        return len(self._rows)
