"""RabbitMQConsumer: IBrokerConsumer with one prefetch-limited channel per queue."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..correlation import CORRELATION_HEADER
from ..exceptions import BrokerError, EnvelopeSerializationError
from ..serialization import EnvelopeSerializer

if TYPE_CHECKING:
    from aio_pika.abc import AbstractChannel, AbstractIncomingMessage

    from ..ports.broker import DeliveryHandler
    from .connection import RabbitMQConnectionManager

logger = logging.getLogger("corehub.rabbitmq")


class RabbitMQConsumer:
    """RabbitMQ adapter implementing IBrokerConsumer.

    Queues are consumed as they are (never declared here). Undecodable
    bodies are rejected without requeue; every other delivery is acked once
    the handler returns. The handler is expected not to raise; if it does,
    the message is rejected without requeue.
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        *,
        serializer: EnvelopeSerializer | None = None,
        prefetch_count: int = 10,
    ) -> None:
        self._connection = connection
        self._serializer = serializer or EnvelopeSerializer()
        self._prefetch_count = prefetch_count
        self._channels: dict[str, AbstractChannel] = {}

    async def subscribe(self, queue: str, handler: DeliveryHandler) -> None:
        if queue in self._channels:
            return
        channel = await self._connection.open_channel(prefetch_count=self._prefetch_count)
        try:
            target = await channel.get_queue(queue, ensure=False)

            async def on_message(raw: AbstractIncomingMessage) -> None:
                await self.process(raw, handler)

            await target.consume(on_message)
        except Exception as e:
            if not channel.is_closed:
                await channel.close()
            raise BrokerError(f"Cannot consume queue {queue}: {e}") from e
        self._channels[queue] = channel

    async def unsubscribe(self, queue: str) -> None:
        channel = self._channels.pop(queue, None)
        if channel is not None and not channel.is_closed:
            await channel.close()

    async def process(self, raw: AbstractIncomingMessage, handler: DeliveryHandler) -> None:
        try:
            envelope = self._serializer.deserialize(raw.body)
        except EnvelopeSerializationError as e:
            logger.error("Rejecting undecodable message %s: %s", raw.message_id, e)
            await raw.reject(requeue=False)
            return
        async with raw.process(requeue=False, ignore_processed=True):
            await handler(envelope, self._headers(raw))

    @staticmethod
    def _headers(raw: AbstractIncomingMessage) -> dict[str, Any]:
        headers: dict[str, Any] = dict(raw.headers or {})
        if raw.correlation_id and not any(
            str(k).lower() == CORRELATION_HEADER.lower() for k in headers
        ):
            headers[CORRELATION_HEADER] = raw.correlation_id
        return headers

    async def close(self) -> None:
        for channel in self._channels.values():
            if not channel.is_closed:
                await channel.close()
        self._channels.clear()
