"""Custom exception hierarchy for parksync."""

from __future__ import annotations


class ParkSyncError(Exception):
    """Base exception for all parksync errors."""


class ParkSyncConfigError(ParkSyncError):
    """Invalid or missing configuration."""


class ParkSyncTransportError(ParkSyncError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ParkSyncSubscriptionError(ParkSyncError):
    """Change-feed subscription failed (join rejected or socket error).

    The runtime stops on this error; no reconnect is attempted.
    """

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)
