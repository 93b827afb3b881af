"""Tests for HttpxWebhookClient using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from corehub.dispatch import HttpxWebhookClient
from corehub.exceptions import WebhookDeliveryError

URL = "https://hooks.example.com/orders"


def _client(handler) -> tuple[HttpxWebhookClient, httpx.AsyncClient]:  # type: ignore[no-untyped-def]
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxWebhookClient(client=http, user_agent="corehub-test"), http


@pytest.mark.asyncio
async def test_post_sends_json_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    client, http = _client(handler)
    await client.post(URL, {"messageId": "m-1"}, {"X-Correlation-Id": "c-1"})
    await http.aclose()

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == URL
    assert json.loads(request.content) == {"messageId": "m-1"}
    assert request.headers["X-Correlation-Id"] == "c-1"
    assert request.headers["User-Agent"] == "corehub-test"
    assert request.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_redirect_counts_as_delivered() -> None:
    client, http = _client(lambda request: httpx.Response(302, headers={"Location": "/x"}))
    await client.post(URL, {}, {})
    await http.aclose()


@pytest.mark.parametrize("status_code", [400, 404, 500, 503])
@pytest.mark.asyncio
async def test_error_status_raises(status_code: int) -> None:
    client, http = _client(lambda request: httpx.Response(status_code))

    with pytest.raises(WebhookDeliveryError) as exc_info:
        await client.post(URL, {}, {})
    await http.aclose()

    assert exc_info.value.status_code == status_code
    assert exc_info.value.reason == f"HTTP {status_code}"
    assert exc_info.value.url == URL


@pytest.mark.asyncio
async def test_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, http = _client(handler)

    with pytest.raises(WebhookDeliveryError) as exc_info:
        await client.post(URL, {}, {})
    await http.aclose()

    assert exc_info.value.status_code is None
    assert "connection refused" in exc_info.value.reason


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open() -> None:
    client, http = _client(lambda request: httpx.Response(200))
    await client.aclose()
    assert not http.is_closed
    await http.aclose()


@pytest.mark.asyncio
async def test_owned_client_is_closed() -> None:
    client = HttpxWebhookClient(connect_timeout=1.0, read_timeout=2.0)
    await client.aclose()
    assert client._client.is_closed
    assert client._client.timeout.read == 2.0
    assert client._client.timeout.connect == 1.0
