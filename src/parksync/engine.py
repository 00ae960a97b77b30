"""Parking occupancy synchronization engine."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import StrEnum
from typing import Any

import aiohttp

from parksync._transport import RestTransport, Transport
from parksync.config import ParkSyncConfig
from parksync.exceptions import ParkSyncError, ParkSyncTransportError
from parksync.ingestion.apply import apply_change
from parksync.ingestion.changes import ChangeFeedSubscriber, SubscriptionHandle
from parksync.ingestion.snapshot import SnapshotLoader
from parksync.models import ChangeEvent, ParkingFeature
from parksync.render import RenderSink
from parksync.state.store import FeatureStore

_logger = logging.getLogger(__name__)


class SnapshotState(StrEnum):
    PENDING = "pending"
    LOADED = "loaded"
    FAILED = "failed"


class ParkingSyncEngine:
    """Keeps a render sink in sync with the parking table.

    Usage::

        async with ParkingSyncEngine(config, sink) as engine:
            await engine.wait_closed()

    Startup subscribes to the change feed first, then loads the snapshot,
    seeds the store and presents it. Change events received meanwhile wait
    in a queue and are applied, one at a time, once seeding is done. Every
    mutation runs on the event loop, so no locking is needed.
    """

    def __init__(
        self,
        config: ParkSyncConfig,
        sink: RenderSink,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        subscriber: ChangeFeedSubscriber | None = None,
    ) -> None:
        self._config = config
        self._sink = sink
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._subscriber = subscriber
        self._store = FeatureStore(reject_stale=config.reject_stale)
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._handle: SubscriptionHandle | None = None
        self._snapshot_state = SnapshotState.PENDING
        self._snapshot_error: ParkSyncTransportError | None = None
        self._started = False
        self._closed = False
        self._closed_event = asyncio.Event()
        self.presented = 0

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ParkingSyncEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Subscribe, load and present the snapshot, then start applying changes.

        An unexpected error during startup tears the engine down before it
        propagates, so no subscription or owned session outlives it.
        """
        if self._closed:
            raise ParkSyncError("Engine is closed")
        if self._started:
            return
        self._started = True
        try:
            await self._start()
        except BaseException:
            await self.close()
            raise

    async def _start(self) -> None:
        if self._transport is None or self._subscriber is None:
            session = self._http_session
            if session is None:
                session = self._http_session = aiohttp.ClientSession()
            if self._transport is None:
                self._transport = RestTransport(self._config, session)
            if self._subscriber is None:
                self._subscriber = ChangeFeedSubscriber(self._config, session)
        transport, subscriber = self._transport, self._subscriber

        handle = await subscriber.subscribe(self._enqueue)
        if self._closed:
            _logger.debug("Subscription completed after teardown; releasing it")
            await subscriber.unsubscribe(handle)
            return
        self._handle = handle

        await self._load_snapshot(SnapshotLoader(transport))
        if self._closed:
            return

        self._consumer = asyncio.create_task(self._consume(), name="parksync-consumer")

    async def close(self) -> None:
        """Unsubscribe, stop applying changes and discard the collection."""
        if self._closed:
            return
        self._closed = True

        handle = self._handle
        self._handle = None
        if handle is not None and self._subscriber is not None:
            try:
                await self._subscriber.unsubscribe(handle)
            except Exception:
                _logger.debug("Change feed unsubscribe failed", exc_info=True)

        consumer = self._consumer
        self._consumer = None
        if consumer is not None:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer

        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

        self._store.clear()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._closed_event.set()

    async def wait_closed(self) -> None:
        await self._closed_event.wait()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def snapshot_state(self) -> SnapshotState:
        """``FAILED`` distinguishes a failed snapshot from an empty table."""
        return self._snapshot_state

    @property
    def snapshot_error(self) -> ParkSyncTransportError | None:
        return self._snapshot_error

    @property
    def subscription_active(self) -> bool:
        return self._handle is not None and self._handle.active

    @property
    def features(self) -> tuple[ParkingFeature, ...]:
        return self._store.features

    @property
    def collection(self) -> dict[str, Any]:
        """Current render-facing FeatureCollection (a copy)."""
        return self._store.to_geojson()

    async def drain(self) -> None:
        """Wait until every queued change event has been applied."""
        if self._consumer is None:
            return
        await self._queue.join()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def _load_snapshot(self, loader: SnapshotLoader) -> None:
        try:
            features = await loader.load_snapshot()
        except ParkSyncTransportError as exc:
            if self._closed:
                return
            _logger.warning("Snapshot load failed; collection stays empty: %s", exc)
            self._snapshot_state = SnapshotState.FAILED
            self._snapshot_error = exc
            return

        if self._closed:
            _logger.debug("Snapshot completed after teardown; discarded")
            return

        self._store.seed(features)
        self._snapshot_state = SnapshotState.LOADED
        _logger.info("Snapshot seeded with %d space(s)", len(self._store))
        self._present()

    def _enqueue(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self.apply_change(event)
            finally:
                self._queue.task_done()

    def apply_change(self, event: ChangeEvent) -> bool:
        """Reconcile one change event and present the result if it changed."""
        if self._closed:
            return False
        changed = apply_change(self._store, event)
        if changed:
            self._present()
        return changed

    def _present(self) -> None:
        if self._closed:
            return
        collection = self._store.to_geojson()
        try:
            self._sink.present(collection)
        except Exception:
            _logger.warning("Render sink failed to present %d feature(s)", len(collection["features"]), exc_info=True)
            return
        self.presented += 1
