"""Engine configuration for parksync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from urllib.parse import quote, urlencode

from parksync._constants import (
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_SCHEMA,
    DEFAULT_TABLE,
    REALTIME_PATH,
    REALTIME_VSN,
    REST_PATH,
)
from parksync.exceptions import ParkSyncConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class ParkSyncConfig:
    """Engine configuration.

    Parameters
    ----------
    url : str
        Backend project URL, e.g. ``"https://xyz.supabase.co"``.
    api_key : str
        Anonymous (or service) API key sent as ``apikey`` and bearer token.
    schema_name : str
        Database schema of the parking table.
    table : str
        Table holding one row per parking space.
    channel : str or None
        Realtime channel name. Defaults to the table name.
    event : str
        Change kinds to subscribe to (``"*"``, ``"INSERT"``, ``"UPDATE"``
        or ``"DELETE"``).
    heartbeat_interval : float
        Seconds between realtime heartbeats.
    request_timeout : float
        Total timeout for the snapshot request, in seconds.
    reject_stale : bool
        Drop change events whose commit timestamp is older than the one
        already applied for the same space. Off by default, so the
        last-delivered event always wins.
    """

    url: str
    api_key: str
    schema_name: str = DEFAULT_SCHEMA
    table: str = DEFAULT_TABLE
    channel: str | None = None
    event: str = "*"
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL
    request_timeout: float = 10.0
    reject_stale: bool = False

    def __post_init__(self) -> None:
        if not self.url or not self.url.strip():
            raise ParkSyncConfigError("url must be non-empty")
        if not self.api_key or not self.api_key.strip():
            raise ParkSyncConfigError("api_key must be non-empty")
        if self.event not in {"*", "INSERT", "UPDATE", "DELETE"}:
            raise ParkSyncConfigError(f"Unsupported change event filter: {self.event!r}")
        if self.heartbeat_interval <= 0:
            raise ParkSyncConfigError("heartbeat_interval must be positive")
        object.__setattr__(self, "url", self.url.strip().rstrip("/"))

    @property
    def channel_name(self) -> str:
        return self.channel or self.table

    @property
    def topic(self) -> str:
        """Phoenix topic joined for the change feed."""
        return f"realtime:{self.channel_name}"

    @property
    def rest_url(self) -> str:
        """Snapshot endpoint selecting every column of every row."""
        return f"{self.url}{REST_PATH}/{quote(self.table)}?select=*"

    @property
    def realtime_url(self) -> str:
        base = self.url
        if base.startswith("https://"):
            base = "wss://" + base[len("https://") :]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://") :]
        query = urlencode({"apikey": self.api_key, "vsn": REALTIME_VSN})
        return f"{base}{REALTIME_PATH}?{query}"

    @classmethod
    def from_env(cls, **overrides: Any) -> ParkSyncConfig:
        """Create configuration from environment variables.

        Reads ``SUPABASE_URL``, ``SUPABASE_KEY`` and optional
        ``PARKSYNC_*`` variables. Explicit keyword arguments override
        environment values.

        Raises
        ------
        ParkSyncConfigError
            When the URL or key is missing, or a numeric variable is invalid.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "SUPABASE_URL": "url",
            "SUPABASE_KEY": "api_key",
            "PARKSYNC_SCHEMA": "schema_name",
            "PARKSYNC_TABLE": "table",
            "PARKSYNC_CHANNEL": "channel",
            "PARKSYNC_EVENT": "event",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "PARKSYNC_HEARTBEAT_INTERVAL": "heartbeat_interval",
            "PARKSYNC_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = float(val)
            except ValueError as exc:
                raise ParkSyncConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "reject_stale" not in overrides:
            config_kwargs["reject_stale"] = _env_bool(env.get("PARKSYNC_REJECT_STALE"), False)

        config_kwargs.update(overrides)

        for required in ("url", "api_key"):
            if not config_kwargs.get(required):
                raise ParkSyncConfigError(f"Missing required setting: {required}")

        return cls(**config_kwargs)
