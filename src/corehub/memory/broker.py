"""InMemoryBroker: admin, publisher and consumer fake with assertion helpers."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..correlation import CORRELATION_HEADER
from ..exceptions import BrokerError, BrokerPublishError

if TYPE_CHECKING:
    from ..envelope import MessageEnvelope
    from ..ports.broker import DeliveryHandler


def topic_binding_matches(binding_key: str, routing_key: str) -> bool:
    """AMQP topic semantics: ``*`` is one word, ``#`` is zero or more words."""

    def walk(pattern: list[str], words: list[str]) -> bool:
        if not pattern:
            return not words
        head, rest = pattern[0], pattern[1:]
        if head == "#":
            return any(walk(rest, words[i:]) for i in range(len(words) + 1))
        if not words:
            return False
        return (head == "*" or head == words[0]) and walk(rest, words[1:])

    return walk(binding_key.split("."), routing_key.split("."))


@dataclass(frozen=True)
class PublishedMessage:
    exchange: str
    routing_key: str
    envelope: MessageEnvelope
    correlation_id: str | None = None


@dataclass
class _Exchange:
    type: str
    bindings: set[tuple[str, str]] = field(default_factory=set)  # (queue, routing key)


class InMemoryBroker:
    """In-memory implementation of IBrokerAdmin, IBrokerPublisher and IBrokerConsumer.

    Exchanges route to bound queues; queued envelopes are handed to the
    subscribed handler as soon as one exists. ``declare_calls`` counts
    declarations per resource kind, ``fail_declare`` names resources whose
    declaration fails and ``fail_publish`` makes every publish fail.
    """

    def __init__(self) -> None:
        self.exchanges: dict[str, _Exchange] = {}
        self.queues: dict[str, list[tuple[MessageEnvelope, dict[str, Any]]]] = {}
        self.declare_calls: Counter[str] = Counter()
        self.probe_calls: Counter[str] = Counter()
        self.fail_declare: set[str] = set()
        self.fail_publish = False
        self._published: list[PublishedMessage] = []
        self._handlers: dict[str, DeliveryHandler] = {}

    # ── IBrokerAdmin ─────────────────────────────────────────────

    async def declare_exchange(
        self,
        name: str,
        exchange_type: str = "topic",
        *,
        durable: bool = True,  # noqa: ARG002
        auto_delete: bool = False,  # noqa: ARG002
    ) -> None:
        self.declare_calls["exchange"] += 1
        if name in self.fail_declare:
            raise BrokerError(f"Cannot declare exchange {name}")
        self.exchanges.setdefault(name, _Exchange(type=exchange_type))

    async def declare_queue(
        self,
        name: str,
        *,
        durable: bool = True,  # noqa: ARG002
        auto_delete: bool = False,  # noqa: ARG002
    ) -> None:
        self.declare_calls["queue"] += 1
        if name in self.fail_declare:
            raise BrokerError(f"Cannot declare queue {name}")
        self.queues.setdefault(name, [])

    async def declare_binding(self, exchange: str, queue: str, routing_key: str) -> None:
        self.declare_calls["binding"] += 1
        if exchange not in self.exchanges or queue not in self.queues:
            raise BrokerError(f"Cannot bind {queue} to {exchange}: NOT_FOUND")
        self.exchanges[exchange].bindings.add((queue, routing_key))

    async def exchange_exists(self, name: str) -> bool:
        self.probe_calls["exchange"] += 1
        return name in self.exchanges

    async def queue_exists(self, name: str) -> bool:
        self.probe_calls["queue"] += 1
        return name in self.queues

    def has_binding(self, exchange: str, queue: str, routing_key: str) -> bool:
        target = self.exchanges.get(exchange)
        return target is not None and (queue, routing_key) in target.bindings

    # ── IBrokerPublisher ─────────────────────────────────────────

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        envelope: MessageEnvelope,
        *,
        correlation_id: str | None = None,
    ) -> None:
        if self.fail_publish:
            raise BrokerPublishError(f"Publish to {exchange} failed: broker unavailable")
        target = self.exchanges.get(exchange)
        if target is None:
            raise BrokerPublishError(f"Publish to {exchange} failed: NOT_FOUND")
        self._published.append(PublishedMessage(exchange, routing_key, envelope, correlation_id))
        headers: dict[str, Any] = {}
        if correlation_id:
            headers[CORRELATION_HEADER] = correlation_id
        for queue in sorted(self._route(target, routing_key)):
            self.queues[queue].append((envelope, headers))
            await self._drain(queue)

    async def health_check(self) -> bool:
        return not self.fail_publish

    @staticmethod
    def _route(exchange: _Exchange, routing_key: str) -> set[str]:
        if exchange.type == "fanout":
            return {queue for queue, _ in exchange.bindings}
        if exchange.type == "topic":
            return {q for q, key in exchange.bindings if topic_binding_matches(key, routing_key)}
        return {q for q, key in exchange.bindings if key == routing_key}

    # ── IBrokerConsumer ──────────────────────────────────────────

    async def subscribe(self, queue: str, handler: DeliveryHandler) -> None:
        if queue not in self.queues:
            raise BrokerError(f"Cannot consume queue {queue}: NOT_FOUND")
        self._handlers[queue] = handler
        await self._drain(queue)

    async def unsubscribe(self, queue: str) -> None:
        self._handlers.pop(queue, None)

    async def _drain(self, queue: str) -> None:
        handler = self._handlers.get(queue)
        pending = self.queues[queue]
        while handler is not None and pending:
            envelope, headers = pending.pop(0)
            await handler(envelope, headers)

    # ── Test helpers ─────────────────────────────────────────────

    def get_published(self) -> list[PublishedMessage]:
        return list(self._published)

    def assert_published(self, count: int = 1, routing_key: str | None = None) -> None:
        """Assert that exactly *count* messages were published (optionally per key)."""
        published = self._published
        if routing_key is not None:
            published = [p for p in published if p.routing_key == routing_key]
        assert len(published) == count, (
            f"Expected {count} published message(s), got {len(published)}: "
            f"{[p.routing_key for p in self._published]}"
        )

    def consumed_queues(self) -> set[str]:
        return set(self._handlers)

    def clear(self) -> None:
        self._published.clear()
        self.declare_calls.clear()
        self.probe_calls.clear()
