"""Channel value object and the in-process channel registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ChannelResolutionError, ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger("corehub.channels")

DEFAULT_ORG_PREFIX = "corehub"
CHANNEL_NAME_RULE = "channel name must follow pattern squad.topic.event"


class Channel(BaseModel):
    """Logical publish destination mapped to an exchange and routing key.

    The queue that backs a channel carries the channel's own name, so every
    event gets a dedicated queue bound to its squad's exchange.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1)
    exchange: str = Field(..., min_length=1)
    routing_key: str = Field(..., min_length=1, alias="routingKey")

    @property
    def queue(self) -> str:
        return self.name


def derive_channel(name: str, org_prefix: str = DEFAULT_ORG_PREFIX) -> Channel:
    """Build a channel from a ``squad.topic.event`` style name.

    The first segment selects the squad exchange ``<org_prefix>.x.<squad>``;
    the full name is the routing key.

    Raises:
        ChannelResolutionError: If the name has fewer than two segments or
            an empty segment.
    """
    segments = name.split(".")
    if len(segments) < 2 or not all(segments):
        raise ChannelResolutionError(name, CHANNEL_NAME_RULE)
    return Channel(
        name=name,
        exchange=f"{org_prefix}.x.{segments[0]}",
        routing_key=name,
    )


class ChannelRegistry:
    """Name -> :class:`Channel` mapping, append-only for the process lifetime.

    Seeded once from static configuration; afterwards channels are only
    added through :meth:`add`, which inserts atomically (``dict.setdefault``)
    so concurrent publishers racing on the same dynamic channel see exactly
    one winner.
    """

    def __init__(self, channels: Iterable[Channel] = ()) -> None:
        self._by_name: dict[str, Channel] = {}
        self._listeners: list[Callable[[Channel], None]] = []
        for channel in channels:
            if channel.name in self._by_name:
                raise ConfigurationError(f"Duplicate channel name in configuration: {channel.name}")
            self._by_name[channel.name] = channel
        logger.info("ChannelRegistry initialized with %d channels", len(self._by_name))

    def find(self, name: str) -> Channel | None:
        return self._by_name.get(name)

    def all(self) -> dict[str, Channel]:
        """Return a snapshot copy safe to iterate while the registry grows."""
        return dict(self._by_name)

    def add(self, channel: Channel) -> bool:
        """Insert *channel* unless the name is taken; never overwrites.

        Returns True if this call inserted the channel.
        """
        current = self._by_name.setdefault(channel.name, channel)
        if current is not channel:
            logger.warning("Channel %s already exists, not adding", channel.name)
            return False
        logger.info(
            "Added dynamic channel: %s -> exchange: %s, routingKey: %s",
            channel.name,
            channel.exchange,
            channel.routing_key,
        )
        for listener in list(self._listeners):
            try:
                listener(channel)
            except Exception:  # noqa: BLE001
                logger.exception("Channel listener failed for %s", channel.name)
        return True

    def resolve(self, name: str, org_prefix: str = DEFAULT_ORG_PREFIX) -> Channel:
        """Find *name* or derive and register it on the fly.

        When two callers derive the same channel concurrently the loser falls
        back to the winner's instance.
        """
        existing = self.find(name)
        if existing is not None:
            return existing
        channel = derive_channel(name, org_prefix)
        if self.add(channel):
            return channel
        winner = self.find(name)
        if winner is None:
            raise ChannelResolutionError(name, "failed to create or find channel")
        return winner

    def add_listener(self, listener: Callable[[Channel], None]) -> None:
        """Register a callback invoked after each successful :meth:`add`."""
        self._listeners.append(listener)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)
