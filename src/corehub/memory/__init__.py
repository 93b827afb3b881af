"""In-memory adapters for tests and single-process runs."""

from .broker import InMemoryBroker, PublishedMessage
from .stores import InMemoryMessageStore, InMemorySubscriptionStore

__all__ = [
    "InMemoryBroker",
    "InMemoryMessageStore",
    "InMemorySubscriptionStore",
    "PublishedMessage",
]
