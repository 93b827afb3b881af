"""DispatchConsumer: bridges channel queues to the WebhookDispatcher."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ..correlation import CORRELATION_HEADER, header_lookup, set_correlation_id

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..channels import Channel, ChannelRegistry
    from ..envelope import MessageEnvelope
    from ..infrastructure.reconciler import InfrastructureReconciler
    from ..ports.broker import IBrokerConsumer
    from .dispatcher import WebhookDispatcher

logger = logging.getLogger("corehub.dispatch")


class DispatchConsumer:
    """
    Consumes every channel queue and hands each delivery to the dispatcher.

    At most ``max_concurrency`` messages are dispatched at once. Channels
    registered after :meth:`start` are picked up through a registry
    listener, so dynamically created channels are consumed too. With a
    reconciler, a channel's infrastructure is reconciled before its queue is
    consumed.
    """

    def __init__(
        self,
        broker: IBrokerConsumer,
        registry: ChannelRegistry,
        dispatcher: WebhookDispatcher,
        *,
        reconciler: InfrastructureReconciler | None = None,
        max_concurrency: int = 16,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._broker = broker
        self._registry = registry
        self._dispatcher = dispatcher
        self._reconciler = reconciler
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._listening: set[str] = set()
        self._pending: set[asyncio.Task[None]] = set()
        self._running = False
        self._listener_installed = False

    @property
    def queues(self) -> frozenset[str]:
        return frozenset(self._listening)

    async def start(self) -> None:
        """Subscribe to the queue of every registered channel."""
        self._running = True
        if not self._listener_installed:
            self._registry.add_listener(self._on_channel_added)
            self._listener_installed = True
        for channel in self._registry.all().values():
            await self.listen(channel)
        logger.info("Dispatch consumer listening on %d queue(s)", len(self._listening))

    async def listen(self, channel: Channel) -> bool:
        """Start consuming *channel*'s queue; a second call is a no-op."""
        if channel.queue in self._listening:
            return False
        self._listening.add(channel.queue)
        if self._reconciler is not None and not await self._reconciler.reconcile(channel):
            self._listening.discard(channel.queue)
            logger.warning(
                "Infrastructure for channel %s not ready; queue not consumed", channel.name
            )
            return False
        try:
            await self._broker.subscribe(channel.queue, self.handle)
        except Exception:  # noqa: BLE001
            self._listening.discard(channel.queue)
            logger.exception("Failed to consume queue %s", channel.queue)
            return False
        logger.info("Consuming queue %s for channel %s", channel.queue, channel.name)
        return True

    def _on_channel_added(self, channel: Channel) -> None:
        if not self._running:
            return
        try:
            task = asyncio.get_running_loop().create_task(self.listen(channel))
        except RuntimeError:
            logger.warning("No running event loop; channel %s not consumed yet", channel.name)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def handle(self, envelope: MessageEnvelope, headers: Mapping[str, Any]) -> None:
        """Dispatch one delivery; never raises back into the broker adapter."""
        correlation_id = header_lookup(headers, CORRELATION_HEADER)
        set_correlation_id(correlation_id)
        async with self._semaphore:
            try:
                await self._dispatcher.dispatch(envelope, correlation_id)
            except Exception:  # noqa: BLE001
                logger.exception("Dispatch failed for message %s", envelope.message_id)

    async def wait_idle(self) -> None:
        """Wait for pending dynamic subscriptions to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel pending subscriptions and release every consumed queue.

        A later :meth:`start` subscribes to all queues again.
        """
        self._running = False
        for task in list(self._pending):
            task.cancel()
        await self.wait_idle()
        for queue in sorted(self._listening):
            try:
                await self._broker.unsubscribe(queue)
            except Exception:  # noqa: BLE001
                logger.exception("Failed to release queue %s", queue)
        self._listening.clear()
        logger.info("Dispatch consumer stopped")
