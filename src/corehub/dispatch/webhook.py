"""HttpxWebhookClient: IWebhookClient over a shared httpx.AsyncClient."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..exceptions import WebhookDeliveryError

logger = logging.getLogger("corehub.dispatch")


class HttpxWebhookClient:
    """
    POSTs JSON bodies to subscriber URLs with bounded timeouts.

    Any 2xx/3xx response counts as delivered; 4xx/5xx responses and
    transport errors raise :class:`WebhookDeliveryError`. One client (and
    its connection pool) is shared by all deliveries; call :meth:`aclose`
    on shutdown.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
        user_agent: str = "corehub-dispatcher",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.user_agent = user_agent
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
            follow_redirects=False,
        )

    async def post(self, url: str, body: dict[str, Any], headers: dict[str, str]) -> None:
        request_headers = {"User-Agent": self.user_agent, **headers}
        try:
            response = await self._client.post(url, json=body, headers=request_headers)
        except httpx.HTTPError as e:
            raise WebhookDeliveryError(url, str(e) or type(e).__name__) from e
        if response.is_error:
            status = response.status_code
            raise WebhookDeliveryError(url, f"HTTP {status}", status_code=status)
        logger.debug("Webhook %s answered %s", url, response.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
