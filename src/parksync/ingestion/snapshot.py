"""Snapshot ingestion: one bulk read of every parking row."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from parksync._transport import Transport
from parksync.ingestion.apply import build_feature
from parksync.models import ParkingFeature, ParkingRecord

_logger = logging.getLogger(__name__)


def build_features(rows: list[dict[str, Any]]) -> list[ParkingFeature]:
    """Validate and transform snapshot rows, skipping rows that do not parse."""
    features: list[ParkingFeature] = []
    for row in rows:
        try:
            record = ParkingRecord.model_validate(row)
        except ValidationError:
            _logger.warning("Skipping malformed snapshot row: %r", row, exc_info=True)
            continue
        features.append(build_feature(record))
    return features


class SnapshotLoader:
    """Loads the current set of parking spaces through a transport."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def load_snapshot(self) -> list[ParkingFeature]:
        """Fetch every row and return the render-ready features.

        Raises
        ------
        ParkSyncTransportError
            When the fetch fails. Nothing is retried.
        """
        rows = await self._transport.fetch_rows()
        features = build_features(rows)
        _logger.debug("Snapshot loaded: %d row(s), %d feature(s)", len(rows), len(features))
        return features
