"""Ports (protocols) implemented by corehub adapters."""

from .broker import IBrokerAdmin, IBrokerConsumer, IBrokerPublisher
from .stores import IMessageStore, ISubscriptionStore
from .webhook import IWebhookClient

__all__ = [
    "IBrokerAdmin",
    "IBrokerConsumer",
    "IBrokerPublisher",
    "IMessageStore",
    "ISubscriptionStore",
    "IWebhookClient",
]
