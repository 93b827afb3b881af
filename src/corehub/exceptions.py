"""Exception hierarchy for corehub."""

from __future__ import annotations


class CoreHubError(Exception):
    """Root exception for the entire corehub package."""


class ConfigurationError(CoreHubError):
    """Raised when settings or static channel configuration are invalid."""


class ValidationError(CoreHubError):
    """Raised when caller input is rejected.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))

    @property
    def message(self) -> str:
        """Flatten the structured errors into one human readable line."""
        return "; ".join(msg for messages in self.errors.values() for msg in messages)


class InvalidPatternError(ValidationError):
    """Raised when a subscription pattern places ``#`` mid-pattern."""

    def __init__(self, field: str, pattern: str) -> None:
        self.field = field
        self.pattern = pattern
        super().__init__(
            {
                field: [
                    f"wildcard '#' may only appear at the start or end of the "
                    f"pattern: {pattern!r}"
                ]
            }
        )


class DuplicateSubscriptionError(ValidationError):
    """Raised when a subscription for the same webhook URL and topic exists."""

    def __init__(self, webhook_url: str, topic: str) -> None:
        self.webhook_url = webhook_url
        self.topic = topic
        super().__init__(
            f"a subscription with webhook URL {webhook_url!r} and topic "
            f"{topic!r} already exists"
        )


class NotFoundError(CoreHubError):
    """Raised when a resource cannot be found."""


class ChannelResolutionError(NotFoundError, ValidationError):
    """Raised when a channel is unknown and its name cannot be derived."""

    def __init__(self, channel_name: str, reason: str) -> None:
        self.channel_name = channel_name
        self.reason = reason
        super().__init__({"channel": [f"cannot resolve channel {channel_name!r}: {reason}"]})


class InfrastructureError(CoreHubError):
    """Base class for all infrastructure-related errors."""


class BrokerError(InfrastructureError):
    """Base class for message broker failures."""


class BrokerConnectionError(BrokerError):
    """Raised when connectivity to the message broker fails."""


class BrokerPublishError(BrokerError):
    """Raised when the broker rejects or fails to confirm a publish."""


class EnvelopeSerializationError(InfrastructureError):
    """Raised when an envelope cannot be encoded or decoded."""


class WebhookDeliveryError(InfrastructureError):
    """Raised by webhook clients when a single delivery attempt fails."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Webhook delivery to {url} failed: {reason}")


class PersistenceError(InfrastructureError):
    """Base class for all persistence-related errors."""


class DuplicateMessageError(PersistenceError):
    """Raised when a message log entry with the same message id already exists."""

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"message {message_id!r} already recorded")
