"""Persistence ports for message logs, payloads and subscriptions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from ..records import (
        MessageLogEntry,
        MessageStatus,
        PayloadRecord,
        Subscription,
        SubscriptionStatus,
    )


@runtime_checkable
class IMessageStore(Protocol):
    """
    Row store for :class:`MessageLogEntry` and its :class:`PayloadRecord`.

    Both rows are created together by :meth:`create` in a single
    transaction.
    """

    async def create(self, entry: MessageLogEntry, payload: PayloadRecord) -> None:
        """
        Insert a log entry and its payload atomically.

        Raises:
            DuplicateMessageError: If ``entry.message_id`` is already recorded.
        """
        ...

    async def get(self, message_id: str) -> MessageLogEntry | None: ...

    async def update(self, entry: MessageLogEntry) -> None:
        """Persist status, attempts, error and publish timestamp of *entry*."""
        ...

    async def get_payload(self, message_id: str) -> PayloadRecord | None: ...

    async def find_by_status(
        self, status: MessageStatus, limit: int = 100
    ) -> list[MessageLogEntry]: ...

    async def count_by_status(self, status: MessageStatus) -> int: ...


@runtime_checkable
class ISubscriptionStore(Protocol):
    """
    Row store for :class:`Subscription`.

    Counter updates (:meth:`record_delivery_success`,
    :meth:`record_delivery_failure`) are single-row atomic operations so
    concurrent dispatches never lose increments.
    """

    async def save(self, subscription: Subscription) -> Subscription:
        """
        Insert or replace *subscription*.

        Raises:
            DuplicateSubscriptionError: If another subscription already uses
                the same ``(webhook_url, topic)`` pair.
        """
        ...

    async def get(self, subscription_id: str) -> Subscription | None: ...

    async def find_by_status(self, status: SubscriptionStatus) -> list[Subscription]: ...

    async def find_by_squad(self, squad_name: str) -> list[Subscription]: ...

    async def exists_by_webhook_and_topic(self, webhook_url: str, topic: str) -> bool: ...

    async def count_by_squad_and_status(
        self, squad_name: str, status: SubscriptionStatus
    ) -> int: ...

    async def update_status(self, subscription_id: str, status: SubscriptionStatus) -> bool: ...

    async def record_delivery_success(self, subscription_id: str, at: datetime) -> bool: ...

    async def record_delivery_failure(
        self, subscription_id: str, error: str, at: datetime
    ) -> bool: ...

    async def delete(self, subscription_id: str) -> bool: ...
