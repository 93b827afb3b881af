"""RabbitMQPublisher: IBrokerPublisher with persistent messages and publisher confirms."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import aio_pika
from aio_pika.exceptions import AMQPError

from ..correlation import CORRELATION_HEADER
from ..exceptions import BrokerPublishError
from ..serialization import EnvelopeSerializer

if TYPE_CHECKING:
    from ..envelope import MessageEnvelope
    from .connection import RabbitMQConnectionManager


class RabbitMQPublisher:
    """RabbitMQ adapter implementing IBrokerPublisher.

    The envelope is the JSON body; ``message_id`` and ``correlation_id``
    are also set as AMQP properties. Confirms are enabled on the shared
    channel, so ``publish`` returns once the broker has accepted the message.
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        *,
        serializer: EnvelopeSerializer | None = None,
    ) -> None:
        self._connection = connection
        self._serializer = serializer or EnvelopeSerializer()

    def build_message(
        self, envelope: MessageEnvelope, correlation_id: str | None = None
    ) -> aio_pika.Message:
        headers: dict[str, str] = {"eventName": envelope.event_name, "source": envelope.source}
        if correlation_id:
            headers[CORRELATION_HEADER] = correlation_id
        return aio_pika.Message(
            body=self._serializer.serialize(envelope),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=envelope.message_id,
            correlation_id=correlation_id,
            timestamp=envelope.timestamp,
            headers=headers,
        )

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        envelope: MessageEnvelope,
        *,
        correlation_id: str | None = None,
    ) -> None:
        message = self.build_message(envelope, correlation_id)
        await self._connection.connect()
        try:
            target = await self._connection.channel.get_exchange(exchange, ensure=False)
            await target.publish(message, routing_key=routing_key)
        except (AMQPError, ConnectionError, OSError, asyncio.TimeoutError) as e:
            raise BrokerPublishError(f"Publish to {exchange} ({routing_key}) failed: {e}") from e

    async def health_check(self) -> bool:
        return await self._connection.health_check()
