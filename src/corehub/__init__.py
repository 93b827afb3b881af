"""Topic-broker to webhook bridge: channels, publishing, reconciliation and dispatch."""

from __future__ import annotations

from .bootstrap import CoreHub
from .channels import Channel, ChannelRegistry, derive_channel
from .config import CoreHubSettings, load_settings
from .correlation import get_correlation_id, set_correlation_id
from .dispatch import DeliveryRecord, DispatchConsumer, WebhookDispatcher
from .envelope import Destination, MessageEnvelope
from .exceptions import (
    ChannelResolutionError,
    ConfigurationError,
    CoreHubError,
    DuplicateSubscriptionError,
    InvalidPatternError,
    NotFoundError,
    ValidationError,
)
from .infrastructure import InfrastructureInitializer, InfrastructureReconciler, ReconcileMode
from .matching import matches, validate_pattern
from .memory import InMemoryBroker, InMemoryMessageStore, InMemorySubscriptionStore
from .publishing import PublishService
from .records import MessageLogEntry, MessageStatus, Subscription, SubscriptionStatus
from .retry import RetryPolicy
from .serialization import EnvelopeSerializer
from .subscriptions import SubscriptionRequest, SubscriptionService

__all__ = [
    "Channel",
    "ChannelRegistry",
    "ChannelResolutionError",
    "ConfigurationError",
    "CoreHub",
    "CoreHubError",
    "CoreHubSettings",
    "DeliveryRecord",
    "Destination",
    "DispatchConsumer",
    "DuplicateSubscriptionError",
    "EnvelopeSerializer",
    "InMemoryBroker",
    "InMemoryMessageStore",
    "InMemorySubscriptionStore",
    "InfrastructureInitializer",
    "InfrastructureReconciler",
    "InvalidPatternError",
    "MessageEnvelope",
    "MessageLogEntry",
    "MessageStatus",
    "NotFoundError",
    "PublishService",
    "ReconcileMode",
    "RetryPolicy",
    "Subscription",
    "SubscriptionRequest",
    "SubscriptionService",
    "SubscriptionStatus",
    "ValidationError",
    "WebhookDispatcher",
    "derive_channel",
    "get_correlation_id",
    "load_settings",
    "matches",
    "set_correlation_id",
    "validate_pattern",
]
