"""Infrastructure reconciliation for channels: exchange, queue and binding.

Two strategies share one interface, ``reconcile(channel) -> bool``:

* :class:`EnsureStrategy` declares whatever is missing (exchange, then queue,
  then binding) and memoizes each successful declaration.
* :class:`ValidateStrategy` only probes passively. Brokers expose no cheap
  binding lookup, so a binding is *inferred* to exist when both its
  exchange and queue exist.

The strategy is picked once, from :class:`ReconcileMode`, when the
:class:`InfrastructureReconciler` is built. Neither strategy raises: broker
failures are logged and reported as ``False``, and the memo is left unset
so the next call tries again.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..channels import Channel, ChannelRegistry
    from ..ports.broker import IBrokerAdmin

logger = logging.getLogger("corehub.infrastructure")

BindingKey = tuple[str, str, str]


class ReconcileMode(str, enum.Enum):
    ENSURE = "ensure"
    VALIDATE = "validate"


@dataclass
class ResourceMemo:
    """Known-good exchanges, queues and ``(exchange, queue, routing_key)`` bindings."""

    exchanges: dict[str, bool] = field(default_factory=dict)
    queues: dict[str, bool] = field(default_factory=dict)
    bindings: dict[BindingKey, bool] = field(default_factory=dict)

    def is_ready(self, channel: Channel) -> bool:
        return (
            self.exchanges.get(channel.exchange, False)
            and self.queues.get(channel.queue, False)
            and self.bindings.get(binding_key(channel), False)
        )


def binding_key(channel: Channel) -> BindingKey:
    return (channel.exchange, channel.queue, channel.routing_key)


class ReconcileStrategy(Protocol):
    memo: ResourceMemo

    async def reconcile(self, channel: Channel) -> bool: ...


class EnsureStrategy:
    """Create missing infrastructure: durable topic exchange, durable queue, binding."""

    def __init__(self, admin: IBrokerAdmin, memo: ResourceMemo | None = None) -> None:
        self._admin = admin
        self.memo = memo or ResourceMemo()

    async def reconcile(self, channel: Channel) -> bool:
        exchange_ok = await self._ensure_exchange(channel.exchange)
        queue_ok = await self._ensure_queue(channel.queue)
        if not (exchange_ok and queue_ok):
            logger.warning(
                "Skipping binding %s -> %s (routing key %s): exchange ready=%s, queue ready=%s",
                channel.exchange,
                channel.queue,
                channel.routing_key,
                exchange_ok,
                queue_ok,
            )
            return False
        if not await self._ensure_binding(channel):
            return False
        logger.info(
            "Infrastructure ready for channel: %s -> exchange: %s, queue: %s, routingKey: %s",
            channel.name,
            channel.exchange,
            channel.queue,
            channel.routing_key,
        )
        return True

    async def _ensure_exchange(self, name: str) -> bool:
        if self.memo.exchanges.get(name):
            logger.debug("Exchange already exists: %s", name)
            return True
        try:
            await self._admin.declare_exchange(name, "topic", durable=True, auto_delete=False)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to declare exchange %s: %s", name, exc)
            return False
        self.memo.exchanges[name] = True
        logger.info("Exchange declared: %s", name)
        return True

    async def _ensure_queue(self, name: str) -> bool:
        if self.memo.queues.get(name):
            logger.debug("Queue already exists: %s", name)
            return True
        try:
            await self._admin.declare_queue(name, durable=True, auto_delete=False)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to declare queue %s: %s", name, exc)
            return False
        self.memo.queues[name] = True
        logger.info("Queue declared: %s", name)
        return True

    async def _ensure_binding(self, channel: Channel) -> bool:
        key = binding_key(channel)
        if self.memo.bindings.get(key):
            logger.debug("Binding already exists: %s -> %s (%s)", *key)
            return True
        try:
            await self._admin.declare_binding(
                channel.exchange, channel.queue, channel.routing_key
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to declare binding %s -> %s (%s): %s", *key, exc)
            return False
        self.memo.bindings[key] = True
        logger.info("Binding declared: %s -> %s (%s)", *key)
        return True


class ValidateStrategy:
    """Probe existing infrastructure without creating anything."""

    def __init__(self, admin: IBrokerAdmin, memo: ResourceMemo | None = None) -> None:
        self._admin = admin
        self.memo = memo or ResourceMemo()

    async def reconcile(self, channel: Channel) -> bool:
        exchange_ok = await self._probe(
            self.memo.exchanges, channel.exchange, self._admin.exchange_exists, "Exchange"
        )
        queue_ok = await self._probe(
            self.memo.queues, channel.queue, self._admin.queue_exists, "Queue"
        )
        # Inferred, not verified: see module docstring.
        binding_ok = exchange_ok and queue_ok
        if binding_ok:
            self.memo.bindings[binding_key(channel)] = True
            logger.debug(
                "Infrastructure validated for channel: %s -> exchange: %s, queue: %s, "
                "routingKey: %s",
                channel.name,
                channel.exchange,
                channel.queue,
                channel.routing_key,
            )
        else:
            logger.warning(
                "Infrastructure missing for channel: %s -> exchange: %s, queue: %s, "
                "routingKey: %s",
                channel.name,
                channel.exchange,
                channel.queue,
                channel.routing_key,
            )
        return binding_ok

    @staticmethod
    async def _probe(memo: dict[str, bool], name: str, exists, kind: str) -> bool:  # type: ignore[no-untyped-def]
        if memo.get(name):
            return True
        try:
            found = bool(await exists(name))
        except Exception as exc:  # noqa: BLE001
            logger.error("Error validating %s %s: %s", kind.lower(), name, exc)
            return False
        if found:
            memo[name] = True
            logger.debug("%s exists: %s", kind, name)
        else:
            logger.warning("%s does not exist: %s", kind, name)
        return found


_STRATEGIES: dict[ReconcileMode, type[EnsureStrategy] | type[ValidateStrategy]] = {
    ReconcileMode.ENSURE: EnsureStrategy,
    ReconcileMode.VALIDATE: ValidateStrategy,
}


@dataclass(frozen=True)
class ReconcileReport:
    """Outcome of a batch reconciliation."""

    succeeded: int
    total: int
    failed_channels: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.succeeded == self.total


class InfrastructureReconciler:
    """Reconciles broker infrastructure for the channels of a registry.

    Usage::

        reconciler = InfrastructureReconciler(admin, registry, ReconcileMode.ENSURE)
        await reconciler.reconcile(channel)
        report = await reconciler.reconcile_all()
    """

    def __init__(
        self,
        admin: IBrokerAdmin,
        registry: ChannelRegistry,
        mode: ReconcileMode | str = ReconcileMode.ENSURE,
    ) -> None:
        self._registry = registry
        self._mode = ReconcileMode(mode)
        self._strategy: ReconcileStrategy = _STRATEGIES[self._mode](admin)

    @property
    def mode(self) -> ReconcileMode:
        return self._mode

    @property
    def memo(self) -> ResourceMemo:
        return self._strategy.memo

    async def reconcile(self, channel: Channel) -> bool:
        try:
            return await self._strategy.reconcile(channel)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to reconcile infrastructure for channel: %s", channel.name)
            return False

    async def reconcile_channel(self, name: str) -> bool:
        """Reconcile a registered channel by name; unknown names yield False."""
        channel = self._registry.find(name)
        if channel is None:
            logger.warning("Channel %s is not registered; nothing to reconcile", name)
            return False
        return await self.reconcile(channel)

    async def reconcile_all(self) -> ReconcileReport:
        """Reconcile every channel in a registry snapshot."""
        channels = self._registry.all()
        if not channels:
            logger.warning(
                "No channels found in registry - infrastructure will be handled on demand"
            )
            return ReconcileReport(succeeded=0, total=0)
        failed: list[str] = []
        for channel in channels.values():
            if not await self.reconcile(channel):
                failed.append(channel.name)
        report = ReconcileReport(
            succeeded=len(channels) - len(failed),
            total=len(channels),
            failed_channels=tuple(failed),
        )
        logger.info(
            "RabbitMQ infrastructure %s completed: %d/%d channels ready",
            self._mode.value,
            report.succeeded,
            report.total,
        )
        return report

    # Aliases named after the mode-specific batch entry points.
    ensure_all = reconcile_all
    validate_all = reconcile_all

    def is_ready(self, name: str) -> bool:
        """True if every resource of the channel is known-good in the memo."""
        channel = self._registry.find(name)
        return channel is not None and self.memo.is_ready(channel)
