"""
SQLAlchemy implementations of the message and subscription stores.

Every call runs in its own session and transaction taken from an
``async_sessionmaker``. Counter updates are single ``UPDATE`` statements,
so concurrent dispatches to the same subscription never lose increments.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from ..exceptions import DuplicateMessageError, DuplicateSubscriptionError, PersistenceError
from ..records import (
    MessageLogEntry,
    MessageStatus,
    PayloadRecord,
    Subscription,
    SubscriptionStatus,
    truncate_error,
    utcnow,
)
from .models import MessageLogModel, PayloadModel, SubscriptionModel

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def _entry_from_model(m: MessageLogModel) -> MessageLogEntry:
    return MessageLogEntry(
        message_id=m.message_id,
        channel=m.channel,
        routing_key=m.routing_key,
        produced_at=m.produced_at,
        status=m.status,
        attempts=m.attempts,
        correlation_id=m.correlation_id,
        error_message=m.error_message,
        published_at=m.published_at,
        created_at=m.created_at,
    )


def _subscription_from_model(m: SubscriptionModel) -> Subscription:
    return Subscription(
        id=m.id,
        webhook_url=m.webhook_url,
        squad_name=m.squad_name,
        topic=m.topic,
        event_name=m.event_name,
        status=m.status,
        created_at=m.created_at,
        updated_at=m.updated_at,
        failed_attempts=m.failed_attempts,
        last_error=m.last_error,
        last_successful_delivery=m.last_successful_delivery,
    )


class SQLAlchemyMessageStore:
    """``IMessageStore`` over the ``message_log`` and ``payload_store`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def create(self, entry: MessageLogEntry, payload: PayloadRecord) -> None:
        """Insert the log row and its payload in one transaction."""
        try:
            async with self.session_factory() as session, session.begin():
                session.add(
                    MessageLogModel(
                        message_id=entry.message_id,
                        channel=entry.channel,
                        routing_key=entry.routing_key,
                        status=entry.status,
                        attempts=entry.attempts,
                        correlation_id=entry.correlation_id,
                        error_message=truncate_error(entry.error_message),
                        produced_at=entry.produced_at,
                        published_at=entry.published_at,
                        created_at=entry.created_at,
                    )
                )
                # Flush the parent first; the payload row references it.
                await session.flush()
                session.add(
                    PayloadModel(
                        message_id=payload.message_id,
                        payload=payload.payload,
                        payload_kind=payload.payload_kind,
                        schema_version=payload.schema_version,
                        created_at=payload.created_at,
                    )
                )
        except IntegrityError as e:
            raise DuplicateMessageError(entry.message_id) from e

    async def get(self, message_id: str) -> MessageLogEntry | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MessageLogModel).where(MessageLogModel.message_id == message_id)
            )
            model = result.scalar_one_or_none()
            return _entry_from_model(model) if model is not None else None

    async def update(self, entry: MessageLogEntry) -> None:
        """Persist the mutable status fields of *entry*."""
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(MessageLogModel)
                .where(MessageLogModel.message_id == entry.message_id)
                .values(
                    status=entry.status,
                    attempts=entry.attempts,
                    error_message=truncate_error(entry.error_message),
                    published_at=entry.published_at,
                )
            )
            if result.rowcount == 0:
                raise PersistenceError(f"message {entry.message_id!r} is not recorded")

    async def get_payload(self, message_id: str) -> PayloadRecord | None:
        async with self.session_factory() as session:
            model = await session.get(PayloadModel, message_id)
            if model is None:
                return None
            return PayloadRecord(
                message_id=model.message_id,
                payload=model.payload,
                payload_kind=model.payload_kind,
                schema_version=model.schema_version,
                created_at=model.created_at,
            )

    async def find_by_status(
        self, status: MessageStatus, limit: int = 100
    ) -> list[MessageLogEntry]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MessageLogModel)
                .where(MessageLogModel.status == status)
                .order_by(MessageLogModel.created_at)
                .limit(limit)
            )
            return [_entry_from_model(m) for m in result.scalars().all()]

    async def count_by_status(self, status: MessageStatus) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(MessageLogModel).where(
                    MessageLogModel.status == status
                )
            )
            return int(result.scalar_one())


class SQLAlchemySubscriptionStore:
    """``ISubscriptionStore`` over the ``subscriptions`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def save(self, subscription: Subscription) -> Subscription:
        try:
            async with self.session_factory() as session, session.begin():
                model = await session.get(SubscriptionModel, subscription.id)
                if model is None:
                    model = SubscriptionModel(id=subscription.id, version=0)
                    session.add(model)
                else:
                    model.version += 1
                model.webhook_url = subscription.webhook_url
                model.squad_name = subscription.squad_name
                model.topic = subscription.topic
                model.event_name = subscription.event_name
                model.status = subscription.status
                model.created_at = subscription.created_at
                model.updated_at = subscription.updated_at
                model.failed_attempts = subscription.failed_attempts
                model.last_error = truncate_error(subscription.last_error)
                model.last_successful_delivery = subscription.last_successful_delivery
        except IntegrityError as e:
            raise DuplicateSubscriptionError(subscription.webhook_url, subscription.topic) from e
        return subscription

    async def get(self, subscription_id: str) -> Subscription | None:
        async with self.session_factory() as session:
            model = await session.get(SubscriptionModel, subscription_id)
            return _subscription_from_model(model) if model is not None else None

    async def _select(self, *criteria: object) -> list[Subscription]:
        async with self.session_factory() as session:
            stmt = select(SubscriptionModel).order_by(SubscriptionModel.created_at)
            if criteria:
                stmt = stmt.where(*criteria)  # type: ignore[arg-type]
            result = await session.execute(stmt)
            return [_subscription_from_model(m) for m in result.scalars().all()]

    async def find_by_status(self, status: SubscriptionStatus) -> list[Subscription]:
        return await self._select(SubscriptionModel.status == status)

    async def find_by_squad(self, squad_name: str) -> list[Subscription]:
        return await self._select(SubscriptionModel.squad_name == squad_name)

    async def exists_by_webhook_and_topic(self, webhook_url: str, topic: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SubscriptionModel.id).where(
                    SubscriptionModel.webhook_url == webhook_url,
                    SubscriptionModel.topic == topic,
                )
            )
            return result.first() is not None

    async def count_by_squad_and_status(
        self, squad_name: str, status: SubscriptionStatus
    ) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(SubscriptionModel)
                .where(
                    SubscriptionModel.squad_name == squad_name,
                    SubscriptionModel.status == status,
                )
            )
            return int(result.scalar_one())

    async def _update(self, subscription_id: str, **values: object) -> bool:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(SubscriptionModel)
                .where(SubscriptionModel.id == subscription_id)
                .values(version=SubscriptionModel.version + 1, **values)
            )
            return bool(result.rowcount)

    async def update_status(self, subscription_id: str, status: SubscriptionStatus) -> bool:
        return await self._update(subscription_id, status=status, updated_at=utcnow())

    async def record_delivery_success(self, subscription_id: str, at: datetime) -> bool:
        return await self._update(
            subscription_id,
            failed_attempts=0,
            last_error=None,
            last_successful_delivery=at,
            updated_at=at,
        )

    async def record_delivery_failure(
        self, subscription_id: str, error: str, at: datetime
    ) -> bool:
        return await self._update(
            subscription_id,
            failed_attempts=SubscriptionModel.failed_attempts + 1,
            last_error=truncate_error(error),
            updated_at=at,
        )

    async def delete(self, subscription_id: str) -> bool:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                delete(SubscriptionModel).where(SubscriptionModel.id == subscription_id)
            )
            return bool(result.rowcount)
