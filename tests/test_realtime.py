from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import aiohttp
import pytest
from aiohttp import test_utils, web

from parksync._realtime import RealtimeMessage, RealtimeRuntime, build_join_payload, decode_message, encode_message
from parksync.config import ParkSyncConfig
from parksync.exceptions import ParkSyncSubscriptionError


@dataclass
class FakeRealtimeServer:
    join_status: str = "ok"
    close_after_join: bool = False
    raw_frames: list[str] = field(default_factory=list)
    changes: list[dict[str, Any]] = field(default_factory=list)
    frames: list[dict[str, Any]] = field(default_factory=list)
    query: dict[str, str] = field(default_factory=dict)

    async def handler(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.query = dict(request.query)
        async for msg in ws:
            if msg.type != aiohttp.WSMsgType.TEXT:
                continue
            frame = json.loads(msg.data)
            self.frames.append(frame)
            if frame["event"] != "phx_join":
                continue
            await ws.send_json(
                {
                    "topic": frame["topic"],
                    "event": "phx_reply",
                    "payload": {"status": self.join_status, "response": {}},
                    "ref": frame["ref"],
                }
            )
            if self.close_after_join:
                await ws.close()
                break
            for text in self.raw_frames:
                await ws.send_str(text)
            for payload in self.changes:
                await ws.send_json({"topic": frame["topic"], "event": "postgres_changes", "payload": payload, "ref": None})
            # Changes on another topic are not ours.
            await ws.send_json({"topic": "realtime:other", "event": "postgres_changes", "payload": {}, "ref": None})
        return ws

    def events(self, name: str) -> list[dict[str, Any]]:
        return [frame for frame in self.frames if frame["event"] == name]


async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


def _server(fake: FakeRealtimeServer) -> test_utils.TestServer:
    app = web.Application()
    app.router.add_get("/realtime/v1/websocket", fake.handler)
    return test_utils.TestServer(app)


def test_encode_decode_frame() -> None:
    text = encode_message("realtime:parkingData", "phx_join", {"a": 1}, "1", join_ref="1")
    assert json.loads(text)["join_ref"] == "1"

    message = decode_message(text)
    assert message == RealtimeMessage(topic="realtime:parkingData", event="phx_join", payload={"a": 1}, ref="1")


def test_decode_rejects_non_object() -> None:
    with pytest.raises(ParkSyncSubscriptionError):
        decode_message("[1, 2]")
    with pytest.raises(ParkSyncSubscriptionError):
        decode_message("not json")


def test_join_payload_filters_table() -> None:
    config = ParkSyncConfig(url="https://x.supabase.co", api_key="k", table="spots", schema_name="parking")

    payload = build_join_payload(config)

    assert payload["config"]["postgres_changes"] == [{"event": "*", "schema": "parking", "table": "spots"}]
    assert payload["access_token"] == "k"


@pytest.mark.asyncio
async def test_runtime_joins_forwards_changes_and_leaves() -> None:
    fake = FakeRealtimeServer(changes=[{"data": {"type": "UPDATE"}, "ids": [1]}, {"data": {"type": "INSERT"}, "ids": [2]}])
    received: list[RealtimeMessage] = []

    async with _server(fake) as server, aiohttp.ClientSession() as session:
        config = ParkSyncConfig(url=f"http://{server.host}:{server.port}", api_key="anon-key", heartbeat_interval=0.05)
        runtime = RealtimeRuntime(config=config, http_session=session, on_message=received.append)

        await runtime.start()
        assert await runtime.wait_joined(2.0) is True
        assert runtime.is_running is True
        assert await _eventually(lambda: len(received) == 2)
        assert await _eventually(lambda: len(fake.events("heartbeat")) >= 1)

        await runtime.stop()
        assert runtime.is_running is False
        assert await _eventually(lambda: len(fake.events("phx_leave")) == 1)

    assert [m.payload["ids"] for m in received] == [[1], [2]]
    assert all(m.topic == "realtime:parkingData" for m in received)
    assert fake.query == {"apikey": "anon-key", "vsn": "1.0.0"}
    join = fake.events("phx_join")[0]
    assert join["topic"] == "realtime:parkingData"
    assert join["payload"]["config"]["postgres_changes"][0]["table"] == "parkingData"
    heartbeat = fake.events("heartbeat")[0]
    assert heartbeat["topic"] == "phoenix"


@pytest.mark.asyncio
async def test_runtime_skips_undecodable_frames() -> None:
    fake = FakeRealtimeServer(raw_frames=["not json", "[1, 2]"], changes=[{"data": {"type": "UPDATE"}, "ids": [1]}])
    received: list[RealtimeMessage] = []

    async with _server(fake) as server, aiohttp.ClientSession() as session:
        config = ParkSyncConfig(url=f"http://{server.host}:{server.port}", api_key="anon-key")
        runtime = RealtimeRuntime(config=config, http_session=session, on_message=received.append)

        await runtime.start()
        assert await _eventually(lambda: len(received) == 1)
        assert runtime.is_running is True
        await runtime.stop()

    assert received[0].payload["ids"] == [1]


@pytest.mark.asyncio
async def test_runtime_stops_when_join_rejected() -> None:
    fake = FakeRealtimeServer(join_status="error")

    async with _server(fake) as server, aiohttp.ClientSession() as session:
        config = ParkSyncConfig(url=f"http://{server.host}:{server.port}", api_key="anon-key")
        runtime = RealtimeRuntime(config=config, http_session=session, on_message=lambda _m: None)

        await runtime.start()
        assert await runtime.wait_joined(2.0) is False
        assert runtime.is_running is False
        assert runtime.is_joined is False
        await runtime.stop()


@pytest.mark.asyncio
async def test_runtime_does_not_reconnect_after_peer_close() -> None:
    fake = FakeRealtimeServer(close_after_join=True)

    async with _server(fake) as server, aiohttp.ClientSession() as session:
        config = ParkSyncConfig(url=f"http://{server.host}:{server.port}", api_key="anon-key")
        runtime = RealtimeRuntime(config=config, http_session=session, on_message=lambda _m: None)

        await runtime.start()
        assert await _eventually(lambda: not runtime.is_running)
        await asyncio.sleep(0.05)
        assert len(fake.events("phx_join")) == 1
        await runtime.stop()


@pytest.mark.asyncio
async def test_runtime_start_raises_when_unreachable() -> None:
    config = ParkSyncConfig(url="http://127.0.0.1:9", api_key="anon-key")

    async with aiohttp.ClientSession() as session:
        runtime = RealtimeRuntime(config=config, http_session=session, on_message=lambda _m: None)
        with pytest.raises(ParkSyncSubscriptionError, match="connect failed"):
            await runtime.start()
        assert runtime.is_running is False
