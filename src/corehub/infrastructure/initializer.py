"""Bulk declaration of statically configured exchanges, queues and bindings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import InfrastructureConfig
    from ..ports.broker import IBrokerAdmin

logger = logging.getLogger("corehub.infrastructure")

EXCHANGE_TYPES = frozenset({"topic", "direct", "fanout", "headers"})
DEFAULT_EXCHANGE_TYPE = "topic"


def normalize_exchange_type(exchange_type: str | None) -> str:
    """Lower-case *exchange_type*; unknown types fall back to ``topic``."""
    value = (exchange_type or "").strip().lower()
    if value in EXCHANGE_TYPES:
        return value
    logger.warning(
        "Unknown exchange type %r, defaulting to %s", exchange_type, DEFAULT_EXCHANGE_TYPE
    )
    return DEFAULT_EXCHANGE_TYPE


@dataclass(frozen=True)
class InfrastructureStatus:
    total_exchanges: int
    total_queues: int
    total_bindings: int
    created_exchanges: int
    created_queues: int
    created_bindings: int

    @property
    def is_complete(self) -> bool:
        return (
            self.created_exchanges == self.total_exchanges
            and self.created_queues == self.total_queues
            and self.created_bindings == self.total_bindings
        )


@dataclass
class _Declared:
    exchanges: set[str] = field(default_factory=set)
    queues: set[str] = field(default_factory=set)
    bindings: set[tuple[str, str, str]] = field(default_factory=set)


class InfrastructureInitializer:
    """Declares an :class:`InfrastructureConfig` against a broker.

    Each item is attempted independently: a failure is logged and the run
    moves on to the next item. Bindings are declared only when both their
    exchange and queue were declared by this initializer.
    """

    def __init__(self, admin: IBrokerAdmin, config: InfrastructureConfig) -> None:
        self._admin = admin
        self._config = config
        self._declared = _Declared()

    async def run(self) -> InfrastructureStatus:
        if self._config.is_empty:
            logger.info("No static infrastructure configured")
            return self.status()
        logger.info("Initializing RabbitMQ infrastructure from configuration")
        await self._declare_exchanges()
        await self._declare_queues()
        await self._declare_bindings()
        status = self.status()
        logger.info(
            "RabbitMQ infrastructure initialized: exchanges %d/%d, queues %d/%d, bindings %d/%d",
            status.created_exchanges,
            status.total_exchanges,
            status.created_queues,
            status.total_queues,
            status.created_bindings,
            status.total_bindings,
        )
        return status

    async def _declare_exchanges(self) -> None:
        for exchange in self._config.exchanges:
            exchange_type = normalize_exchange_type(exchange.type)
            try:
                await self._admin.declare_exchange(
                    exchange.name,
                    exchange_type,
                    durable=exchange.durable,
                    auto_delete=exchange.auto_delete,
                )
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to create exchange %s: %s", exchange.name, exc)
                continue
            self._declared.exchanges.add(exchange.name)
            logger.info("Created exchange: %s (type: %s)", exchange.name, exchange_type)

    async def _declare_queues(self) -> None:
        for queue in self._config.queues:
            try:
                await self._admin.declare_queue(
                    queue.name, durable=queue.durable, auto_delete=queue.auto_delete
                )
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to create queue %s: %s", queue.name, exc)
                continue
            self._declared.queues.add(queue.name)
            logger.info("Created queue: %s", queue.name)

    async def _declare_bindings(self) -> None:
        for binding in self._config.bindings:
            if binding.exchange not in self._declared.exchanges:
                logger.warning(
                    "Skipping binding %s -> %s: exchange not declared",
                    binding.exchange,
                    binding.queue,
                )
                continue
            if binding.queue not in self._declared.queues:
                logger.warning(
                    "Skipping binding %s -> %s: queue not declared",
                    binding.exchange,
                    binding.queue,
                )
                continue
            try:
                await self._admin.declare_binding(
                    binding.exchange, binding.queue, binding.routing_key
                )
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Failed to create binding %s -> %s (%s): %s",
                    binding.exchange,
                    binding.queue,
                    binding.routing_key,
                    exc,
                )
                continue
            self._declared.bindings.add(binding.key)
            logger.info(
                "Created binding: %s -> %s (%s)",
                binding.exchange,
                binding.queue,
                binding.routing_key,
            )

    def status(self) -> InfrastructureStatus:
        return InfrastructureStatus(
            total_exchanges=len(self._config.exchanges),
            total_queues=len(self._config.queues),
            total_bindings=len(self._config.bindings),
            created_exchanges=len(self._declared.exchanges),
            created_queues=len(self._declared.queues),
            created_bindings=len(self._declared.bindings),
        )
