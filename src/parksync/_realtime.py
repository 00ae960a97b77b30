"""Internal realtime (Phoenix channel over WebSocket) runtime.

The runtime owns one WebSocket, joins a single ``postgres_changes``
channel, keeps it alive with heartbeats and hands every change message to
a callback on the running event loop. Disconnects are logged; nothing is
reconnected.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from parksync._constants import CHANGE_EVENT_NAME, PHOENIX_TOPIC
from parksync._redact import redact_for_log, redact_url
from parksync.config import ParkSyncConfig
from parksync.exceptions import ParkSyncSubscriptionError


@dataclass(frozen=True)
class RealtimeMessage:
    """Decoded Phoenix frame."""

    topic: str
    event: str
    payload: dict[str, Any] = field(default_factory=dict)
    ref: str | None = None


def encode_message(
    topic: str,
    event: str,
    payload: dict[str, Any],
    ref: str | None,
    *,
    join_ref: str | None = None,
) -> str:
    frame: dict[str, Any] = {"topic": topic, "event": event, "payload": payload, "ref": ref}
    if join_ref is not None:
        frame["join_ref"] = join_ref
    return json.dumps(frame, separators=(",", ":"))


def decode_message(text: str) -> RealtimeMessage:
    """Parse one text frame into a :class:`RealtimeMessage`."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParkSyncSubscriptionError(f"Realtime frame is not JSON: {text[:64]}") from exc
    if not isinstance(parsed, dict):
        raise ParkSyncSubscriptionError("Realtime frame decoded to non-object JSON")

    payload = parsed.get("payload")
    ref = parsed.get("ref")
    return RealtimeMessage(
        topic=str(parsed.get("topic") or ""),
        event=str(parsed.get("event") or ""),
        payload=payload if isinstance(payload, dict) else {},
        ref=str(ref) if ref is not None else None,
    )


def build_join_payload(config: ParkSyncConfig) -> dict[str, Any]:
    return {
        "config": {
            "broadcast": {"ack": False, "self": False},
            "presence": {"key": ""},
            "postgres_changes": [
                {"event": config.event, "schema": config.schema_name, "table": config.table},
            ],
            "private": False,
        },
        "access_token": config.api_key,
    }


class RealtimeRuntime:
    """asyncio realtime runtime that emits change messages to a callback."""

    def __init__(
        self,
        *,
        config: ParkSyncConfig,
        http_session: aiohttp.ClientSession,
        on_message: Callable[[RealtimeMessage], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._on_message = on_message
        self._logger = logger or logging.getLogger(__name__)
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._heartbeat: asyncio.Task[None] | None = None
        self._refs = itertools.count(1)
        self._join_ref: str | None = None
        self._joined = asyncio.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the socket is open and the reader is active."""
        return self._running

    @property
    def is_joined(self) -> bool:
        return self._joined.is_set()

    @property
    def topic(self) -> str:
        return self._config.topic

    def _next_ref(self) -> str:
        return str(next(self._refs))

    async def start(self) -> None:
        """Connect, send the channel join and start reader + heartbeat tasks.

        Raises
        ------
        ParkSyncSubscriptionError
            When the WebSocket cannot be opened.
        """
        await self.stop()
        url = self._config.realtime_url
        self._logger.debug("Realtime connect requested url=%s topic=%s", redact_url(url), self.topic)

        try:
            ws = await self._http.ws_connect(url, autoping=True)
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise ParkSyncSubscriptionError(f"Realtime connect failed: {exc!r}", topic=self.topic) from exc

        self._ws = ws
        self._running = True
        self._joined.clear()

        join_ref = self._next_ref()
        self._join_ref = join_ref
        payload = build_join_payload(self._config)
        self._logger.debug("Realtime join topic=%s payload=%s", self.topic, redact_for_log(payload))
        try:
            await ws.send_str(encode_message(self.topic, "phx_join", payload, join_ref, join_ref=join_ref))
        except (aiohttp.ClientError, ConnectionError) as exc:
            self._ws = None
            self._running = False
            await ws.close()
            raise ParkSyncSubscriptionError(f"Realtime join send failed: {exc!r}", topic=self.topic) from exc

        self._reader = asyncio.create_task(self._read_loop(ws), name="parksync-realtime-reader")
        self._heartbeat = asyncio.create_task(self._heartbeat_loop(ws), name="parksync-realtime-heartbeat")

    async def wait_joined(self, timeout: float) -> bool:
        """Wait until the server acknowledged the join.

        Returns ``False`` on timeout or when the subscription ends first.
        """
        reader = self._reader
        if reader is None or reader.done():
            return self._joined.is_set()
        joined = asyncio.ensure_future(self._joined.wait())
        try:
            await asyncio.wait({joined, reader}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            joined.cancel()
        return self._joined.is_set()

    async def stop(self) -> None:
        """Leave the channel, stop background tasks and close the socket."""
        ws = self._ws
        self._ws = None
        was_running = self._running
        self._running = False
        self._joined.clear()

        tasks = [task for task in (self._reader, self._heartbeat) if task is not None]
        self._reader = None
        self._heartbeat = None
        current = asyncio.current_task()
        for task in tasks:
            if task is not current:
                task.cancel()
        for task in tasks:
            if task is not current:
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if ws is None:
            return
        try:
            if was_running and not ws.closed:
                self._logger.debug("Realtime leave topic=%s", self.topic)
                await ws.send_str(
                    encode_message(self.topic, "phx_leave", {}, self._next_ref(), join_ref=self._join_ref)
                )
        except (aiohttp.ClientError, ConnectionError):
            self._logger.debug("Realtime leave failed", exc_info=True)
        finally:
            await ws.close()
            self._logger.debug("Realtime socket closed")

    async def _heartbeat_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while not ws.closed:
            await asyncio.sleep(self._config.heartbeat_interval)
            try:
                await ws.send_str(encode_message(PHOENIX_TOPIC, "heartbeat", {}, self._next_ref()))
            except (aiohttp.ClientError, ConnectionError):
                self._logger.warning("Realtime heartbeat failed; socket is gone", exc_info=True)
                return

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for frame in ws:
                if frame.type == aiohttp.WSMsgType.TEXT:
                    try:
                        message = decode_message(frame.data)
                    except ParkSyncSubscriptionError as exc:
                        self._logger.warning("Skipping realtime frame: %s", exc)
                        continue
                    self._dispatch(message)
                elif frame.type == aiohttp.WSMsgType.ERROR:
                    raise ParkSyncSubscriptionError(f"Realtime socket error: {ws.exception()!r}", topic=self.topic)
        except ParkSyncSubscriptionError as exc:
            self._logger.warning("Realtime subscription failed: %s", exc)
        except (aiohttp.ClientError, ConnectionError):
            self._logger.warning("Realtime connection dropped", exc_info=True)
        finally:
            if self._running:
                self._logger.warning("Realtime subscription ended topic=%s code=%s", self.topic, ws.close_code)
                if not ws.closed:
                    await ws.close()
            self._running = False
            self._joined.clear()
            if self._heartbeat is not None:
                self._heartbeat.cancel()

    def _dispatch(self, message: RealtimeMessage) -> None:
        if message.event == "phx_reply":
            if message.ref is not None and message.ref == self._join_ref:
                status = message.payload.get("status")
                if status != "ok":
                    raise ParkSyncSubscriptionError(
                        f"Join rejected: status={status} response={message.payload.get('response')}",
                        topic=message.topic,
                    )
                self._logger.debug("Realtime joined topic=%s", message.topic)
                self._joined.set()
            return

        if message.event in {"phx_error", "phx_close"} and message.topic == self.topic:
            raise ParkSyncSubscriptionError(f"Channel closed by server: {message.event}", topic=message.topic)

        if message.event == "system":
            self._logger.debug("Realtime system message topic=%s payload=%s", message.topic, message.payload)
            return

        if message.event != CHANGE_EVENT_NAME or message.topic != self.topic:
            return

        self._logger.debug("Realtime change topic=%s payload=%s", message.topic, redact_for_log(message.payload))
        try:
            self._on_message(message)
        except Exception:
            self._logger.warning("Realtime change callback failed", exc_info=True)
