"""RabbitMQAdmin: IBrokerAdmin over aio-pika declares and passive declares."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import aio_pika
from aio_pika.exceptions import AMQPError, ChannelNotFoundEntity

from ..exceptions import BrokerError

if TYPE_CHECKING:
    from .connection import RabbitMQConnectionManager

logger = logging.getLogger("corehub.rabbitmq")

_BROKER_ERRORS = (AMQPError, ConnectionError, OSError, asyncio.TimeoutError)


class RabbitMQAdmin:
    """Declares and probes exchanges, queues and bindings.

    Declarations run on the shared channel and are idempotent on the broker
    side. Probes (:meth:`exchange_exists`, :meth:`queue_exists`) use a
    throwaway channel, since a passive declare of a missing resource closes
    the channel it ran on.
    """

    def __init__(self, connection: RabbitMQConnectionManager) -> None:
        self._connection = connection

    async def declare_exchange(
        self,
        name: str,
        exchange_type: str = "topic",
        *,
        durable: bool = True,
        auto_delete: bool = False,
    ) -> None:
        await self._connection.connect()
        try:
            await self._connection.channel.declare_exchange(
                name,
                aio_pika.ExchangeType(exchange_type),
                durable=durable,
                auto_delete=auto_delete,
            )
        except _BROKER_ERRORS as e:
            raise BrokerError(f"Cannot declare exchange {name}: {e}") from e

    async def declare_queue(
        self, name: str, *, durable: bool = True, auto_delete: bool = False
    ) -> None:
        await self._connection.connect()
        try:
            await self._connection.channel.declare_queue(
                name, durable=durable, auto_delete=auto_delete
            )
        except _BROKER_ERRORS as e:
            raise BrokerError(f"Cannot declare queue {name}: {e}") from e

    async def declare_binding(self, exchange: str, queue: str, routing_key: str) -> None:
        await self._connection.connect()
        channel = self._connection.channel
        try:
            bound = await channel.get_queue(queue, ensure=False)
            await bound.bind(exchange, routing_key=routing_key)
        except _BROKER_ERRORS as e:
            raise BrokerError(
                f"Cannot bind queue {queue} to {exchange} with {routing_key}: {e}"
            ) from e

    async def exchange_exists(self, name: str) -> bool:
        try:
            async with self._connection.probe_channel() as channel:
                await channel.declare_exchange(name, passive=True)
        except ChannelNotFoundEntity:
            return False
        except _BROKER_ERRORS as e:
            raise BrokerError(f"Cannot probe exchange {name}: {e}") from e
        return True

    async def queue_exists(self, name: str) -> bool:
        try:
            async with self._connection.probe_channel() as channel:
                await channel.declare_queue(name, passive=True)
        except ChannelNotFoundEntity:
            return False
        except _BROKER_ERRORS as e:
            raise BrokerError(f"Cannot probe queue {name}: {e}") from e
        return True
