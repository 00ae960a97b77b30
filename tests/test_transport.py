from __future__ import annotations

from typing import Any

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from parksync._transport import RestTransport
from parksync.config import ParkSyncConfig
from parksync.exceptions import ParkSyncTransportError


def _app(status: int, body: str, seen: list[dict[str, Any]]) -> web.Application:
    async def handler(request: web.Request) -> web.Response:
        seen.append(
            {
                "path": request.path,
                "query": dict(request.query),
                "apikey": request.headers.get("apikey"),
                "authorization": request.headers.get("Authorization"),
            }
        )
        return web.Response(status=status, text=body, content_type="application/json")

    app = web.Application()
    app.router.add_get("/rest/v1/parkingData", handler)
    return app


async def _fetch(status: int, body: str, seen: list[dict[str, Any]]) -> list[dict[str, Any]]:
    async with test_utils.TestServer(_app(status, body, seen)) as server:
        config = ParkSyncConfig(url=f"http://{server.host}:{server.port}", api_key="anon-key")
        async with aiohttp.ClientSession() as session:
            return await RestTransport(config, session).fetch_rows()


@pytest.mark.asyncio
async def test_fetch_rows_sends_key_and_selects_all() -> None:
    seen: list[dict[str, Any]] = []

    rows = await _fetch(200, '[{"id": 1, "status": "free", "coordinates": [0, 0]}]', seen)

    assert rows == [{"id": 1, "status": "free", "coordinates": [0, 0]}]
    assert seen == [
        {
            "path": "/rest/v1/parkingData",
            "query": {"select": "*"},
            "apikey": "anon-key",
            "authorization": "Bearer anon-key",
        }
    ]


@pytest.mark.asyncio
async def test_fetch_rows_non_200_raises() -> None:
    with pytest.raises(ParkSyncTransportError) as excinfo:
        await _fetch(401, '{"message": "Invalid API key"}', [])

    assert excinfo.value.status_code == 401
    assert excinfo.value.endpoint == "/parkingData"


@pytest.mark.asyncio
async def test_fetch_rows_invalid_json_raises() -> None:
    with pytest.raises(ParkSyncTransportError, match="Invalid JSON"):
        await _fetch(200, "<html>", [])


@pytest.mark.asyncio
async def test_fetch_rows_non_array_raises() -> None:
    with pytest.raises(ParkSyncTransportError, match="Expected a JSON array"):
        await _fetch(200, '{"id": 1}', [])


@pytest.mark.asyncio
async def test_fetch_rows_connection_error_raises() -> None:
    config = ParkSyncConfig(url="http://127.0.0.1:9", api_key="anon-key", request_timeout=2.0)

    async with aiohttp.ClientSession() as session:
        with pytest.raises(ParkSyncTransportError, match="failed"):
            await RestTransport(config, session).fetch_rows()


@pytest.mark.asyncio
async def test_fetch_rows_undecodable_body_raises() -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.Response(
            body=b'[{"id": 1, "status": "\xff\xfe"}]',
            content_type="application/json",
            charset="utf-8",
        )

    app = web.Application()
    app.router.add_get("/rest/v1/parkingData", handler)

    async with test_utils.TestServer(app) as server, aiohttp.ClientSession() as session:
        config = ParkSyncConfig(url=f"http://{server.host}:{server.port}", api_key="anon-key")
        with pytest.raises(ParkSyncTransportError, match="Undecodable body") as excinfo:
            await RestTransport(config, session).fetch_rows()

    assert excinfo.value.endpoint == "/parkingData"
