"""HTTP API tests for the FastAPI router (in-memory adapters, TestClient)."""

from __future__ import annotations

import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient  # noqa: E402

from corehub.bootstrap import CoreHub  # noqa: E402
from corehub.channels import Channel  # noqa: E402
from corehub.contrib.fastapi import create_app  # noqa: E402
from corehub.memory import (  # noqa: E402
    InMemoryBroker,
    InMemoryMessageStore,
    InMemorySubscriptionStore,
)

from conftest import RecordingWebhookClient, make_envelope  # noqa: E402

SUBSCRIPTION = {
    "webhookUrl": "https://hooks.example.com/orders",
    "squadName": "payments",
    "topic": "payments.order.*",
    "eventName": "orderCreated",
}


@pytest.fixture
def hub(
    broker: InMemoryBroker,
    message_store: InMemoryMessageStore,
    subscription_store: InMemorySubscriptionStore,
    webhook_client: RecordingWebhookClient,
    orders_channel: Channel,
) -> CoreHub:
    return CoreHub.create(
        admin=broker,
        broker_publisher=broker,
        broker_consumer=broker,
        message_store=message_store,
        subscription_store=subscription_store,
        webhook_client=webhook_client,
        channels=[orders_channel],
    )


@pytest.fixture
def client(hub: CoreHub):
    with TestClient(create_app(hub)) as test_client:
        yield test_client


def _envelope_json(**kwargs: object) -> dict:
    return make_envelope(**kwargs).to_wire()


# ── Publish ──────────────────────────────────────────────────────


def test_publish_accepted_and_delivered(
    client: TestClient, webhook_client: RecordingWebhookClient
) -> None:
    assert client.post("/subscribe", json=SUBSCRIPTION).status_code == 201

    response = client.post(
        "/publish", json=_envelope_json(), headers={"X-Correlation-Id": "corr-http"}
    )

    assert response.status_code == 202
    assert response.json() == {"status": "accepted", "messageId": "msg-1"}
    url, body, headers = webhook_client.calls[0]
    assert url == SUBSCRIPTION["webhookUrl"]
    assert body["messageId"] == "msg-1"
    assert headers["X-Correlation-Id"] == "corr-http"


def test_publish_invalid_envelope(client: TestClient) -> None:
    data = _envelope_json()
    del data["destination"]

    response = client.post("/publish", json=data)

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "error"
    assert "destination" in body["errors"]


def test_publish_non_json_body(client: TestClient) -> None:
    response = client.post(
        "/publish", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400


def test_publish_underivable_channel(client: TestClient) -> None:
    response = client.post("/publish", json=_envelope_json(channel="badname"))
    assert response.status_code == 404
    assert "badname" in response.json()["message"]


def test_publish_broker_failure(client: TestClient, broker: InMemoryBroker) -> None:
    broker.fail_publish = True
    response = client.post("/publish", json=_envelope_json())
    assert response.status_code == 500
    assert response.json()["status"] == "error"


# ── Subscriptions ────────────────────────────────────────────────


def test_subscription_lifecycle(client: TestClient) -> None:
    created = client.post("/subscribe", json=SUBSCRIPTION).json()
    subscription_id = created["subscriptionId"]
    assert created["status"] == "ACTIVE"
    assert created["failedAttempts"] == 0

    assert client.get(f"/subscribe/{subscription_id}").json()["topic"] == "payments.order.*"
    assert [s["subscriptionId"] for s in client.get("/subscribe").json()] == [subscription_id]
    assert len(client.get("/subscribe/squad/payments").json()) == 1
    assert client.get("/subscribe/stats/squad/payments").json() == {
        "squadName": "payments",
        "activeSubscriptions": 1,
    }

    updated = client.put(f"/subscribe/{subscription_id}/status", params={"status": "SUSPENDED"})
    assert updated.status_code == 200
    assert updated.json()["status"] == "SUSPENDED"
    assert client.get("/subscribe").json() == []

    assert client.delete(f"/unsubscribe/{subscription_id}").status_code == 204
    assert client.delete(f"/subscribe/{subscription_id}").status_code == 404
    assert client.get(f"/subscribe/{subscription_id}").status_code == 404


def test_duplicate_subscription_rejected(client: TestClient) -> None:
    client.post("/subscribe", json=SUBSCRIPTION)
    response = client.post("/subscribe", json={**SUBSCRIPTION, "eventName": "orderPaid"})
    assert response.status_code == 400
    assert "already exists" in response.json()["message"]


def test_mid_pattern_hash_rejected(client: TestClient) -> None:
    response = client.post("/subscribe", json={**SUBSCRIPTION, "topic": "payments.#.created"})
    assert response.status_code == 400
    assert "topic" in response.json()["errors"]


def test_invalid_webhook_url_rejected(client: TestClient) -> None:
    response = client.post("/subscribe", json={**SUBSCRIPTION, "webhookUrl": "ftp://x.y"})
    assert response.status_code == 400
    assert "webhookUrl" in response.json()["errors"]


def test_update_status_of_unknown_subscription(client: TestClient) -> None:
    response = client.put("/subscribe/missing/status", params={"status": "ACTIVE"})
    assert response.status_code == 404


def test_subscriptions_list(client: TestClient) -> None:
    client.post("/subscribe", json=SUBSCRIPTION)
    client.post("/subscribe", json={**SUBSCRIPTION, "topic": "payments.refund.*"})

    listing = client.get("/subscriptions/list").json()

    assert listing["totalSubscriptions"] == 2
    assert listing["activeSubscriptions"] == 2
    assert {e["topic"] for e in listing["events"]} == {"payments.order.*", "payments.refund.*"}


# ── Channels ─────────────────────────────────────────────────────


def test_channels_listing_and_status(client: TestClient) -> None:
    listing = client.get("/channels").json()
    assert listing["totalChannels"] == 1
    assert listing["channels"][0] == {
        "channel": "payments.order.created",
        "exchange": "corehub.x.payments",
        "routingKey": "payments.order.created",
        "queue": "payments.order.created",
        "infrastructureReady": True,
    }
    assert client.get("/channels/payments.order.created/status").status_code == 200
    assert client.get("/channels/missing.channel/status").status_code == 404


def test_initialize_infrastructure(client: TestClient) -> None:
    body = client.post("/channels/infrastructure/initialize").json()

    assert body["status"] == "success"
    assert body["channels"] == {"succeeded": 1, "total": 1, "failed": []}
    assert body["infrastructure"]["complete"] is True


def test_channel_infrastructure(client: TestClient) -> None:
    assert client.post("/channels/missing.channel/infrastructure").status_code == 404

    ok = client.post("/channels/payments.order.created/infrastructure")
    assert ok.status_code == 200
    assert ok.json()["status"] == "success"


def test_channel_infrastructure_failure(hub: CoreHub, broker: InMemoryBroker) -> None:
    broker.fail_declare.add("billing.invoice.paid")
    hub.registry.resolve("billing.invoice.paid")

    with TestClient(create_app(hub, manage_lifecycle=False)) as client:
        response = client.post("/channels/billing.invoice.paid/infrastructure")

    assert response.status_code == 500


# ── Health ───────────────────────────────────────────────────────


def test_health_reports_broker_and_message_counts(client: TestClient) -> None:
    client.post("/publish", json=_envelope_json())

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["broker"] is True
    assert body["messages"] == {"PUBLISHING": 0, "PUBLISHED": 1, "FAILED": 0}


def test_health_degraded_when_broker_down(client: TestClient, broker: InMemoryBroker) -> None:
    broker.fail_publish = True

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"


def test_health_degraded_before_start(hub: CoreHub) -> None:
    with TestClient(create_app(hub, manage_lifecycle=False)) as client:
        response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["started"] is False
