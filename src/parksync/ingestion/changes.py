"""Change-feed ingestion.

Translates realtime ``postgres_changes`` messages into :class:`ChangeEvent`
values and forwards them, in delivery order, to a single callback.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import aiohttp
from pydantic import ValidationError

from parksync._realtime import RealtimeMessage, RealtimeRuntime
from parksync.config import ParkSyncConfig
from parksync.exceptions import ParkSyncSubscriptionError
from parksync.models import ChangeEvent

_logger = logging.getLogger(__name__)


def parse_change_event(payload: dict[str, Any]) -> ChangeEvent | None:
    """Parse a ``postgres_changes`` payload into a :class:`ChangeEvent`.

    Accepts the wire shape (``{"data": {...}, "ids": [...]}``) as well as an
    already-unwrapped ``data`` dict. Returns ``None`` when it does not validate.
    """
    data = payload.get("data")
    candidate = data if isinstance(data, dict) else payload
    try:
        return ChangeEvent.model_validate(candidate)
    except ValidationError:
        _logger.warning("Dropping malformed change payload: %r", candidate, exc_info=True)
        return None


@dataclass
class SubscriptionHandle:
    """Handle returned by :meth:`ChangeFeedSubscriber.subscribe`."""

    topic: str
    runtime: RealtimeRuntime | None

    @property
    def active(self) -> bool:
        return self.runtime is not None and self.runtime.is_running


RuntimeFactory = Callable[..., RealtimeRuntime]


class ChangeFeedSubscriber:
    """Long-lived subscription to per-row change notifications.

    Delivery is at-least-once and ordering is whatever the feed provides.
    A failed or dropped subscription is logged and not retried.
    """

    def __init__(
        self,
        config: ParkSyncConfig,
        http_session: aiohttp.ClientSession,
        *,
        runtime_factory: RuntimeFactory = RealtimeRuntime,
    ) -> None:
        self._config = config
        self._http = http_session
        self._runtime_factory = runtime_factory

    def _matches_table(self, event: ChangeEvent) -> bool:
        if event.table and event.table != self._config.table:
            return False
        return not (event.schema_name and event.schema_name != self._config.schema_name)

    async def subscribe(self, on_event: Callable[[ChangeEvent], None]) -> SubscriptionHandle:
        """Open the change feed and forward every parsed event to *on_event*.

        Returns once the server acknowledged the join, the subscription ended,
        or ``request_timeout`` elapsed, whichever comes first.
        """

        def _on_message(message: RealtimeMessage) -> None:
            event = parse_change_event(message.payload)
            if event is None:
                return
            if not self._matches_table(event):
                _logger.debug("Ignoring change for %s.%s", event.schema_name, event.table)
                return
            on_event(event)

        runtime = self._runtime_factory(
            config=self._config,
            http_session=self._http,
            on_message=_on_message,
            logger=_logger,
        )
        try:
            await runtime.start()
        except ParkSyncSubscriptionError as exc:
            _logger.warning("Change feed subscription failed: %s", exc)
            return SubscriptionHandle(topic=self._config.topic, runtime=None)
        if not await runtime.wait_joined(self._config.request_timeout):
            _logger.warning(
                "Change feed join not acknowledged within %.1fs topic=%s running=%s",
                self._config.request_timeout,
                self._config.topic,
                runtime.is_running,
            )
        return SubscriptionHandle(topic=self._config.topic, runtime=runtime)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Release *handle*. Safe to call more than once."""
        runtime = handle.runtime
        handle.runtime = None
        if runtime is None:
            return
        await runtime.stop()
