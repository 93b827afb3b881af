"""PublishService: channel resolution, deduplication, persistence and broker handoff."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .channels import DEFAULT_ORG_PREFIX
from .correlation import get_correlation_id
from .exceptions import DuplicateMessageError
from .payload import normalize_payload
from .records import MessageLogEntry, PayloadRecord

if TYPE_CHECKING:
    from .channels import Channel, ChannelRegistry
    from .envelope import MessageEnvelope
    from .infrastructure.reconciler import InfrastructureReconciler
    from .ports.broker import IBrokerPublisher
    from .ports.stores import IMessageStore

logger = logging.getLogger("corehub.publish")


class PublishService:
    """
    Publishes envelopes to their channel's exchange, exactly once per message id.

    Lifecycle of :meth:`publish`:

    1. Resolve the channel, deriving and registering it when unknown.
    2. Reconcile broker infrastructure (best-effort, never blocks).
    3. Return early if the message id was already recorded.
    4. Persist a ``PUBLISHING`` log entry together with its payload.
    5. Publish once; the entry ends ``PUBLISHED`` or ``FAILED``.

    There is no retry of the broker publish. A failed message is re-sent by
    resubmitting the same envelope, which step 3 makes safe.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        reconciler: InfrastructureReconciler,
        publisher: IBrokerPublisher,
        store: IMessageStore,
        *,
        org_prefix: str = DEFAULT_ORG_PREFIX,
    ) -> None:
        self.registry = registry
        self.reconciler = reconciler
        self.publisher = publisher
        self.store = store
        self.org_prefix = org_prefix

    async def publish(
        self, envelope: MessageEnvelope, correlation_id: str | None = None
    ) -> MessageLogEntry:
        """
        Publish *envelope* and return its log entry.

        Returns the already recorded entry when the message id is a duplicate.

        Raises:
            ChannelResolutionError: If the channel is unknown and its name
                cannot be derived.
            BrokerError: If the broker publish fails. The entry is persisted
                as ``FAILED`` before the error propagates.
        """
        correlation_id = correlation_id or get_correlation_id()
        channel = self.registry.resolve(envelope.channel, self.org_prefix)

        if not await self.reconciler.reconcile(channel):
            logger.warning(
                "Infrastructure for channel %s is not confirmed; publishing anyway",
                channel.name,
            )

        existing = await self.store.get(envelope.message_id)
        if existing is not None:
            logger.info("Message %s already processed, skipping", envelope.message_id)
            return existing

        entry = MessageLogEntry(
            message_id=envelope.message_id,
            channel=channel.name,
            routing_key=channel.routing_key,
            produced_at=envelope.timestamp,
            correlation_id=correlation_id,
        )
        record = PayloadRecord.from_payload(
            envelope.message_id,
            normalize_payload(envelope.payload),
            schema_version=envelope.metadata.get("schemaVersion"),
        )
        try:
            await self.store.create(entry, record)
        except DuplicateMessageError:
            # A concurrent publish of the same id won the insert.
            logger.info("Message %s recorded concurrently, skipping", envelope.message_id)
            return await self.store.get(envelope.message_id) or entry

        return await self._send(channel, envelope, entry)

    async def _send(
        self, channel: Channel, envelope: MessageEnvelope, entry: MessageLogEntry
    ) -> MessageLogEntry:
        try:
            await self.publisher.publish(
                channel.exchange,
                channel.routing_key,
                envelope,
                correlation_id=entry.correlation_id,
            )
        except Exception as exc:
            logger.error(
                "Failed to publish message %s to %s: %s",
                entry.message_id,
                channel.exchange,
                exc,
            )
            entry.mark_failed(str(exc))
            try:
                await self.store.update(entry)
            except Exception:  # noqa: BLE001
                logger.exception("Could not record failure of message %s", entry.message_id)
            raise

        entry.mark_published()
        try:
            await self.store.update(entry)
        except Exception:  # noqa: BLE001
            # The broker already holds the message; the stored entry stays PUBLISHING.
            logger.exception(
                "Message %s was published but its status could not be recorded",
                entry.message_id,
            )
            return entry
        logger.info(
            "Message %s published to exchange: %s with routing key: %s",
            entry.message_id,
            channel.exchange,
            channel.routing_key,
        )
        return entry
