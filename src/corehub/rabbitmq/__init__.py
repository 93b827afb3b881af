"""RabbitMQ transport adapter (aio-pika)."""

from __future__ import annotations

from .admin import RabbitMQAdmin
from .connection import RabbitMQConnectionManager
from .consumer import RabbitMQConsumer
from .publisher import RabbitMQPublisher

__all__ = [
    "RabbitMQAdmin",
    "RabbitMQConnectionManager",
    "RabbitMQConsumer",
    "RabbitMQPublisher",
]
