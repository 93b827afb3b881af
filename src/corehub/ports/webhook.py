"""IWebhookClient: outbound HTTP delivery port."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IWebhookClient(Protocol):
    """Port for a single webhook POST attempt.

    Implementations raise :class:`~corehub.exceptions.WebhookDeliveryError`
    for any transport failure or error status; returning means delivered.
    """

    async def post(self, url: str, body: dict[str, Any], headers: dict[str, str]) -> None: ...
