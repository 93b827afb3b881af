"""Broker ports: infrastructure administration, publishing and consuming."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Mapping

    from ..envelope import MessageEnvelope

    DeliveryHandler = Callable[
        [MessageEnvelope, Mapping[str, Any]], Coroutine[Any, Any, None]
    ]


@runtime_checkable
class IBrokerAdmin(Protocol):
    """
    Port for declaring and probing broker resources.

    Declarations are idempotent: declaring a resource that already exists
    with compatible arguments succeeds. Probes never create anything.
    """

    async def declare_exchange(
        self,
        name: str,
        exchange_type: str = "topic",
        *,
        durable: bool = True,
        auto_delete: bool = False,
    ) -> None: ...

    async def declare_queue(
        self, name: str, *, durable: bool = True, auto_delete: bool = False
    ) -> None: ...

    async def declare_binding(self, exchange: str, queue: str, routing_key: str) -> None: ...

    async def exchange_exists(self, name: str) -> bool:
        """Passive declare: True if the exchange exists, False otherwise."""
        ...

    async def queue_exists(self, name: str) -> bool:
        """Passive declare: True if the queue exists, False otherwise."""
        ...


@runtime_checkable
class IBrokerPublisher(Protocol):
    """Port for publishing envelopes to an exchange with a routing key."""

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        envelope: MessageEnvelope,
        *,
        correlation_id: str | None = None,
    ) -> None:
        """
        Publish *envelope* as the message body.

        Raises:
            BrokerError: If the broker is unreachable or rejects the message.
        """
        ...

    async def health_check(self) -> bool:
        """Return True if the broker connection is usable."""
        ...


@runtime_checkable
class IBrokerConsumer(Protocol):
    """Port for consuming envelopes from a named queue."""

    async def subscribe(self, queue: str, handler: DeliveryHandler) -> None:
        """
        Start delivering messages from *queue* to *handler*.

        Args:
            queue: Queue name (one queue per channel).
            handler: Async callable receiving the decoded envelope and the
                transport headers.
        """
        ...

    async def unsubscribe(self, queue: str) -> None:
        """Stop delivering messages from *queue*; unknown queues are ignored."""
        ...
