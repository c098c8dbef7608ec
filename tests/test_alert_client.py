from __future__ import annotations

import asyncio
from typing import Any

import pytest
from aiohttp import test_utils, web

from safetrail.errors import DeliveryError
from safetrail.utils.alert_client import AlertIngestionClient

PAYLOAD = {
    "type": "PANIC_BUTTON",
    "severity": "HIGH",
    "message": "Emergency alert triggered",
    "location": {"latitude": 12.34, "longitude": 56.78},
    "metadata": {"source": "mobile_app"},
}


def _ingestion_app(status: int, received: list[dict[str, Any]], delay: float = 0.0) -> web.Application:
    async def handle(request: web.Request) -> web.Response:
        received.append({
            "body": await request.json(),
            "authorization": request.headers.get("Authorization"),
        })
        if delay:
            await asyncio.sleep(delay)
        return web.json_response({"ok": status < 300}, status=status)

    app = web.Application()
    app.router.add_post("/alerts", handle)
    return app


async def test_successful_delivery_posts_payload_with_token() -> None:
    received: list[dict[str, Any]] = []

    async with test_utils.TestServer(_ingestion_app(201, received)) as server:
        client = AlertIngestionClient(api_url=str(server.make_url("/alerts")), api_token="secret", timeout=5)
        await client.send_alert(PAYLOAD)

    assert received == [{"body": PAYLOAD, "authorization": "Bearer secret"}]


async def test_no_token_sends_no_authorization_header() -> None:
    received: list[dict[str, Any]] = []

    async with test_utils.TestServer(_ingestion_app(200, received)) as server:
        client = AlertIngestionClient(api_url=str(server.make_url("/alerts")), api_token="", timeout=5)
        await client.send_alert(PAYLOAD)

    assert received[0]["authorization"] is None


async def test_server_error_raises_delivery_error() -> None:
    received: list[dict[str, Any]] = []

    async with test_utils.TestServer(_ingestion_app(500, received)) as server:
        client = AlertIngestionClient(api_url=str(server.make_url("/alerts")), timeout=5)
        with pytest.raises(DeliveryError) as exc_info:
            await client.send_alert(PAYLOAD)

    assert exc_info.value.status == 500
    assert "500" in str(exc_info.value)


async def test_timeout_raises_delivery_error() -> None:
    received: list[dict[str, Any]] = []

    async with test_utils.TestServer(_ingestion_app(200, received, delay=1.0)) as server:
        client = AlertIngestionClient(api_url=str(server.make_url("/alerts")), timeout=0.1)
        with pytest.raises(DeliveryError):
            await client.send_alert(PAYLOAD)


async def test_unreachable_host_raises_delivery_error() -> None:
    port = test_utils.unused_port()
    client = AlertIngestionClient(api_url=f"http://127.0.0.1:{port}/alerts", timeout=2)

    with pytest.raises(DeliveryError) as exc_info:
        await client.send_alert(PAYLOAD)

    assert exc_info.value.status is None
