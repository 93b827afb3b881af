"""Webhook dispatch: consumer, fan-out dispatcher and HTTP client."""

from .consumer import DispatchConsumer
from .dispatcher import DeliveryRecord, DeliveryStatus, WebhookDispatcher
from .webhook import HttpxWebhookClient

__all__ = [
    "DeliveryRecord",
    "DeliveryStatus",
    "DispatchConsumer",
    "HttpxWebhookClient",
    "WebhookDispatcher",
]
