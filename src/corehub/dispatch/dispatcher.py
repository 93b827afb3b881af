"""WebhookDispatcher: fan an inbound envelope out to matching subscribers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from ..correlation import (
    CORRELATION_HEADER,
    SUBSCRIPTION_HEADER,
    generate_correlation_id,
    get_correlation_id,
)
from ..records import utcnow
from ..retry import RetryPolicy

if TYPE_CHECKING:
    from ..channels import ChannelRegistry
    from ..envelope import MessageEnvelope
    from ..ports.webhook import IWebhookClient
    from ..records import Subscription
    from ..subscriptions import SubscriptionService

logger = logging.getLogger("corehub.dispatch")


class DeliveryStatus(Enum):
    """Outcome of delivering one message to one subscriber."""

    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryRecord:
    """Immutable record of a delivery to a single subscription."""

    subscription_id: str
    webhook_url: str
    status: DeliveryStatus
    attempts: int
    error: str | None = None
    finished_at: datetime = field(default_factory=utcnow)

    @property
    def delivered(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED

    @classmethod
    def success(cls, subscription: Subscription, attempts: int) -> DeliveryRecord:
        """Create a successful delivery record."""
        return cls(
            subscription_id=subscription.id,
            webhook_url=subscription.webhook_url,
            status=DeliveryStatus.DELIVERED,
            attempts=attempts,
        )

    @classmethod
    def failure(cls, subscription: Subscription, attempts: int, error: str) -> DeliveryRecord:
        """Create a failed delivery record."""
        return cls(
            subscription_id=subscription.id,
            webhook_url=subscription.webhook_url,
            status=DeliveryStatus.FAILED,
            attempts=attempts,
            error=error,
        )


class WebhookDispatcher:
    """
    Delivers one envelope to every matching active subscription.

    Subscribers are served concurrently and independently. Each delivery is
    retried according to the :class:`RetryPolicy` (3 attempts, 300ms x
    attempt linear backoff by default); the outcome is written back to the
    subscription's health fields. Nothing raised here reaches the broker
    layer.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        subscriptions: SubscriptionService,
        client: IWebhookClient,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.registry = registry
        self.subscriptions = subscriptions
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()

    async def dispatch(
        self, envelope: MessageEnvelope, correlation_id: str | None = None
    ) -> list[DeliveryRecord]:
        """Deliver *envelope* to its subscribers; returns one record per match."""
        channel = self.registry.find(envelope.channel)
        if channel is None:
            logger.warning(
                "Channel %s not found in registry; dropping message %s",
                envelope.channel,
                envelope.message_id,
            )
            return []

        try:
            targets = await self.subscriptions.find_matching(
                channel.routing_key, envelope.event_name
            )
        except Exception:  # noqa: BLE001
            logger.exception("Failed to load subscriptions for message %s", envelope.message_id)
            return []

        if not targets:
            logger.debug(
                "No subscriptions match topic %s and event %s",
                channel.routing_key,
                envelope.event_name,
            )
            return []

        correlation_id = correlation_id or get_correlation_id() or generate_correlation_id()
        logger.info(
            "Dispatching message %s to %d subscriber(s) for topic %s, event %s",
            envelope.message_id,
            len(targets),
            channel.routing_key,
            envelope.event_name,
        )
        results = await asyncio.gather(
            *(self.deliver(s, envelope, correlation_id) for s in targets),
            return_exceptions=True,
        )
        records: list[DeliveryRecord] = []
        for subscription, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Unexpected error delivering to subscription %s: %s", subscription.id, result
                )
                records.append(DeliveryRecord.failure(subscription, 0, str(result)))
            else:
                records.append(result)
        return records

    async def deliver(
        self, subscription: Subscription, envelope: MessageEnvelope, correlation_id: str
    ) -> DeliveryRecord:
        """Run the retry sequence for one subscriber and record its outcome."""
        body = envelope.to_wire()
        headers = {
            "Content-Type": "application/json",
            CORRELATION_HEADER: correlation_id,
            SUBSCRIPTION_HEADER: subscription.id,
        }
        attempt = 0
        last_error = ""
        while True:
            attempt += 1
            try:
                await self.client.post(subscription.webhook_url, body, headers)
            except Exception as exc:  # noqa: BLE001
                last_error = str(exc) or type(exc).__name__
                if not self.retry_policy.should_retry(attempt):
                    break
                logger.warning(
                    "Webhook attempt %d/%d to %s failed: %s",
                    attempt,
                    self.retry_policy.max_attempts,
                    subscription.webhook_url,
                    last_error,
                )
                await self.retry_policy.wait_before_retry(attempt)
                continue

            logger.info(
                "Webhook delivered to %s (subscription %s) on attempt %d",
                subscription.webhook_url,
                subscription.id,
                attempt,
            )
            await self._record(self.subscriptions.record_success(subscription.id), subscription)
            return DeliveryRecord.success(subscription, attempt)

        logger.error(
            "Webhook delivery to %s (subscription %s) failed after %d attempts: %s",
            subscription.webhook_url,
            subscription.id,
            attempt,
            last_error,
        )
        await self._record(
            self.subscriptions.record_failure(subscription.id, last_error), subscription
        )
        return DeliveryRecord.failure(subscription, attempt, last_error)

    @staticmethod
    async def _record(update, subscription: Subscription) -> None:  # type: ignore[no-untyped-def]
        try:
            if not await update:
                logger.warning("Subscription %s vanished before its health update", subscription.id)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to update health of subscription %s", subscription.id)
