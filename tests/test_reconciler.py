"""Tests for InfrastructureReconciler in ensure and validate modes."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from corehub.channels import Channel, ChannelRegistry, derive_channel
from corehub.exceptions import BrokerError
from corehub.infrastructure import InfrastructureReconciler, ReconcileMode
from corehub.memory import InMemoryBroker


@pytest.mark.asyncio
async def test_ensure_declares_exchange_queue_and_binding(
    broker: InMemoryBroker, reconciler: InfrastructureReconciler, orders_channel: Channel
) -> None:
    assert await reconciler.reconcile(orders_channel) is True

    assert broker.exchanges["corehub.x.payments"].type == "topic"
    assert "payments.order.created" in broker.queues
    assert broker.has_binding(
        "corehub.x.payments", "payments.order.created", "payments.order.created"
    )
    assert reconciler.is_ready("payments.order.created") is True


@pytest.mark.asyncio
async def test_ensure_is_memoized(
    broker: InMemoryBroker, reconciler: InfrastructureReconciler, orders_channel: Channel
) -> None:
    await reconciler.reconcile(orders_channel)
    await reconciler.reconcile(orders_channel)

    assert broker.declare_calls == {"exchange": 1, "queue": 1, "binding": 1}


@pytest.mark.asyncio
async def test_ensure_reuses_squad_exchange_across_channels(broker: InMemoryBroker) -> None:
    registry = ChannelRegistry(
        [derive_channel("payments.order.created"), derive_channel("payments.order.paid")]
    )
    report = await InfrastructureReconciler(broker, registry).reconcile_all()

    assert report.is_complete
    assert broker.declare_calls == {"exchange": 1, "queue": 2, "binding": 2}


@pytest.mark.asyncio
async def test_failed_exchange_skips_binding_and_is_retried(
    broker: InMemoryBroker, reconciler: InfrastructureReconciler, orders_channel: Channel
) -> None:
    broker.fail_declare.add("corehub.x.payments")

    assert await reconciler.reconcile(orders_channel) is False
    assert broker.declare_calls["binding"] == 0
    assert reconciler.is_ready("payments.order.created") is False
    assert "corehub.x.payments" not in reconciler.memo.exchanges
    assert reconciler.memo.queues == {"payments.order.created": True}

    broker.fail_declare.clear()
    assert await reconciler.reconcile(orders_channel) is True
    assert broker.declare_calls == {"exchange": 2, "queue": 1, "binding": 1}


@pytest.mark.asyncio
async def test_failed_queue_skips_binding(
    broker: InMemoryBroker, reconciler: InfrastructureReconciler, orders_channel: Channel
) -> None:
    broker.fail_declare.add("payments.order.created")

    assert await reconciler.reconcile(orders_channel) is False
    assert broker.declare_calls["binding"] == 0
    assert reconciler.memo.exchanges == {"corehub.x.payments": True}


@pytest.mark.asyncio
async def test_binding_failure_is_not_memoized(orders_channel: Channel) -> None:
    admin = AsyncMock()
    admin.declare_binding.side_effect = [BrokerError("NOT_FOUND"), None]
    reconciler = InfrastructureReconciler(admin, ChannelRegistry([orders_channel]))

    assert await reconciler.reconcile(orders_channel) is False
    assert await reconciler.reconcile(orders_channel) is True
    assert admin.declare_exchange.await_count == 1
    assert admin.declare_binding.await_count == 2


@pytest.mark.asyncio
async def test_validate_mode_never_declares(
    broker: InMemoryBroker, registry: ChannelRegistry, orders_channel: Channel
) -> None:
    reconciler = InfrastructureReconciler(broker, registry, ReconcileMode.VALIDATE)

    assert await reconciler.reconcile(orders_channel) is False
    assert sum(broker.declare_calls.values()) == 0
    assert reconciler.memo.exchanges == {}
    assert reconciler.memo.queues == {}


@pytest.mark.asyncio
async def test_validate_mode_memoizes_only_positive_probes(
    broker: InMemoryBroker, registry: ChannelRegistry, orders_channel: Channel
) -> None:
    await broker.declare_exchange("corehub.x.payments")
    broker.clear()
    reconciler = InfrastructureReconciler(broker, registry, "validate")

    assert await reconciler.reconcile(orders_channel) is False
    assert await reconciler.reconcile(orders_channel) is False
    # The exchange was found once and memoized; the missing queue is probed every time.
    assert broker.probe_calls == {"exchange": 1, "queue": 2}

    await broker.declare_queue("payments.order.created")
    assert await reconciler.reconcile(orders_channel) is True
    assert reconciler.is_ready("payments.order.created") is True
    assert broker.probe_calls == {"exchange": 1, "queue": 3}


@pytest.mark.asyncio
async def test_validate_mode_probe_error_reports_false(
    registry: ChannelRegistry, orders_channel: Channel
) -> None:
    admin = AsyncMock()
    admin.exchange_exists.side_effect = BrokerError("connection reset")
    admin.queue_exists.return_value = True
    reconciler = InfrastructureReconciler(admin, registry, ReconcileMode.VALIDATE)

    assert await reconciler.reconcile(orders_channel) is False
    assert reconciler.memo.queues == {"payments.order.created": True}


@pytest.mark.asyncio
async def test_reconcile_all_reports_failures(broker: InMemoryBroker) -> None:
    registry = ChannelRegistry(
        [derive_channel("payments.order.created"), derive_channel("billing.invoice.paid")]
    )
    broker.fail_declare.add("corehub.x.billing")

    report = await InfrastructureReconciler(broker, registry).reconcile_all()

    assert report.succeeded == 1
    assert report.total == 2
    assert report.failed_channels == ("billing.invoice.paid",)
    assert not report.is_complete


@pytest.mark.asyncio
async def test_reconcile_all_with_empty_registry(broker: InMemoryBroker) -> None:
    report = await InfrastructureReconciler(broker, ChannelRegistry()).reconcile_all()
    assert report.total == 0
    assert report.is_complete


@pytest.mark.asyncio
async def test_reconcile_channel_unknown_name(reconciler: InfrastructureReconciler) -> None:
    assert await reconciler.reconcile_channel("missing.channel") is False
    assert await reconciler.reconcile_channel("payments.order.created") is True


def test_mode_is_parsed(broker: InMemoryBroker, registry: ChannelRegistry) -> None:
    assert InfrastructureReconciler(broker, registry, "validate").mode is ReconcileMode.VALIDATE
    with pytest.raises(ValueError):
        InfrastructureReconciler(broker, registry, "repair")
