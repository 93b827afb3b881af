"""Shared fixtures for corehub tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from corehub.channels import Channel, ChannelRegistry
from corehub.correlation import set_correlation_id
from corehub.envelope import MessageEnvelope
from corehub.exceptions import WebhookDeliveryError
from corehub.infrastructure import InfrastructureReconciler
from corehub.memory import InMemoryBroker, InMemoryMessageStore, InMemorySubscriptionStore
from corehub.subscriptions import SubscriptionRequest


def make_envelope(
    message_id: str = "msg-1",
    channel: str = "payments.order.created",
    event_name: str = "orderCreated",
    payload: Any = None,
    **metadata: str,
) -> MessageEnvelope:
    return MessageEnvelope(
        message_id=message_id,
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        source="checkout-service",
        destination={"channel": channel, "event_name": event_name},
        metadata=metadata,
        payload={"orderId": 42} if payload is None else payload,
    )


def make_request(
    webhook_url: str = "https://hooks.example.com/orders",
    squad_name: str = "payments",
    topic: str = "payments.order.*",
    event_name: str = "orderCreated",
) -> SubscriptionRequest:
    return SubscriptionRequest(
        webhook_url=webhook_url,
        squad_name=squad_name,
        topic=topic,
        event_name=event_name,
    )


class RecordingWebhookClient:
    """IWebhookClient fake: replays scripted failures per URL and records calls."""

    def __init__(self, failures: dict[str, int] | None = None) -> None:
        self.failures = dict(failures or {})
        self.calls: list[tuple[str, dict[str, Any], dict[str, str]]] = []

    async def post(self, url: str, body: dict[str, Any], headers: dict[str, str]) -> None:
        self.calls.append((url, body, headers))
        remaining = self.failures.get(url, 0)
        if remaining:
            self.failures[url] = remaining - 1
            raise WebhookDeliveryError(url, "HTTP 503", status_code=503)

    def urls(self) -> list[str]:
        return [url for url, _, _ in self.calls]


@pytest.fixture(autouse=True)
def _reset_correlation_id():
    set_correlation_id(None)
    yield
    set_correlation_id(None)


@pytest.fixture
def orders_channel() -> Channel:
    return Channel(
        name="payments.order.created",
        exchange="corehub.x.payments",
        routing_key="payments.order.created",
    )


@pytest.fixture
def registry(orders_channel: Channel) -> ChannelRegistry:
    return ChannelRegistry([orders_channel])


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def message_store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def subscription_store() -> InMemorySubscriptionStore:
    return InMemorySubscriptionStore()


@pytest.fixture
def reconciler(broker: InMemoryBroker, registry: ChannelRegistry) -> InfrastructureReconciler:
    return InfrastructureReconciler(broker, registry)


@pytest.fixture
def webhook_client() -> RecordingWebhookClient:
    return RecordingWebhookClient()
