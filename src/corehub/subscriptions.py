"""Subscription requests and the subscription management service."""

from __future__ import annotations

import logging
import re
import uuid
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .exceptions import DuplicateSubscriptionError, NotFoundError
from .matching import matches, validate_pattern
from .records import (
    Subscription,
    SubscriptionListing,
    SubscriptionStatus,
    SubscriptionSummary,
    utcnow,
)

if TYPE_CHECKING:
    from datetime import datetime

    from .ports.stores import ISubscriptionStore

logger = logging.getLogger("corehub.subscriptions")

_WEBHOOK_URL = re.compile(
    r"^(https?://)[\w\-]+(\.[\w\-]+)+([\w\-.,@?^=%&:/~+#]*[\w\-@?^=%&/~+#])?$"
)
_SQUAD_OR_EVENT = re.compile(r"^[a-zA-Z0-9\-_.#*]+$")
_TOPIC = re.compile(r"^[a-zA-Z0-9\-_.:#*]+$")


class SubscriptionRequest(BaseModel):
    """Inbound subscription request (camelCase on the wire).

    ``squadName``, ``topic`` and ``eventName`` may contain the ``*`` and
    ``#`` wildcards; ``#`` is only accepted at the start or end.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    webhook_url: str = Field(..., min_length=1, max_length=500)
    squad_name: str = Field(..., min_length=1, max_length=100)
    topic: str = Field(..., min_length=1, max_length=200)
    event_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("webhook_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not _WEBHOOK_URL.match(value):
            raise ValueError("webhook URL must be a valid http(s) URL")
        return value

    @field_validator("squad_name", "event_name")
    @classmethod
    def _squad_or_event_chars(cls, value: str) -> str:
        if not _SQUAD_OR_EVENT.match(value):
            raise ValueError(
                "may only contain letters, digits, '-', '_', '.' and the wildcards '*' and '#'"
            )
        return value

    @field_validator("topic")
    @classmethod
    def _topic_chars(cls, value: str) -> str:
        if not _TOPIC.match(value):
            raise ValueError(
                "may only contain letters, digits, '-', '_', '.', ':' "
                "and the wildcards '*' and '#'"
            )
        return value


def _new_id() -> str:
    return str(uuid.uuid4())


class SubscriptionService:
    """Create, query and maintain webhook subscriptions.

    Also the read side of dispatch: :meth:`find_matching` selects the active
    subscriptions whose topic and event patterns both match.
    """

    def __init__(
        self,
        store: ISubscriptionStore,
        *,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self.store = store
        self._id_factory = id_factory

    async def create(self, request: SubscriptionRequest) -> Subscription:
        """
        Register a new ACTIVE subscription.

        Raises:
            InvalidPatternError: If ``#`` sits mid-pattern in the squad name,
                topic or event name.
            DuplicateSubscriptionError: If the ``(webhook_url, topic)`` pair
                is already subscribed, whatever the event name.
        """
        validate_pattern(request.squad_name, "squadName")
        validate_pattern(request.topic, "topic")
        validate_pattern(request.event_name, "eventName")

        if await self.store.exists_by_webhook_and_topic(request.webhook_url, request.topic):
            raise DuplicateSubscriptionError(request.webhook_url, request.topic)

        now = utcnow()
        subscription = Subscription(
            id=self._id_factory(),
            webhook_url=request.webhook_url,
            squad_name=request.squad_name,
            topic=request.topic,
            event_name=request.event_name,
            status=SubscriptionStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        saved = await self.store.save(subscription)
        logger.info(
            "Subscription created: %s for squad: %s, topic: %s, event: %s",
            saved.id,
            saved.squad_name,
            saved.topic,
            saved.event_name,
        )
        return saved

    async def get(self, subscription_id: str) -> Subscription | None:
        return await self.store.get(subscription_id)

    async def require(self, subscription_id: str) -> Subscription:
        subscription = await self.store.get(subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        return subscription

    async def list_active(self) -> list[Subscription]:
        return await self.store.find_by_status(SubscriptionStatus.ACTIVE)

    async def list_by_squad(self, squad_name: str) -> list[Subscription]:
        return await self.store.find_by_squad(squad_name)

    async def update_status(
        self, subscription_id: str, status: SubscriptionStatus | str
    ) -> Subscription:
        """Set the status of a subscription; raises NotFoundError if unknown."""
        status = SubscriptionStatus(status)
        if not await self.store.update_status(subscription_id, status):
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        logger.info("Subscription %s status updated to %s", subscription_id, status.value)
        return await self.require(subscription_id)

    async def delete(self, subscription_id: str) -> None:
        """Remove a subscription; raises NotFoundError if unknown."""
        if not await self.store.delete(subscription_id):
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        logger.info("Subscription deleted: %s", subscription_id)

    async def count_active_by_squad(self, squad_name: str) -> int:
        return await self.store.count_by_squad_and_status(squad_name, SubscriptionStatus.ACTIVE)

    async def list_summary(self) -> SubscriptionListing:
        active = await self.list_active()
        return SubscriptionListing(
            total_subscriptions=len(active),
            active_subscriptions=len(active),
            events=[SubscriptionSummary.of(s) for s in active],
        )

    async def find_matching(self, topic: str, event_name: str) -> list[Subscription]:
        """Active subscriptions whose topic and event patterns both match."""
        return [
            s
            for s in await self.list_active()
            if matches(s.topic, topic) and matches(s.event_name, event_name)
        ]

    async def record_success(self, subscription_id: str, at: datetime | None = None) -> bool:
        return await self.store.record_delivery_success(subscription_id, at or utcnow())

    async def record_failure(
        self, subscription_id: str, error: str, at: datetime | None = None
    ) -> bool:
        return await self.store.record_delivery_failure(subscription_id, error, at or utcnow())
