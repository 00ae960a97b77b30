"""In-memory parking feature collection.

This is the only component allowed to mutate the collection handed to the
render sink. Ids are unique after every call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from parksync.models.feature import ParkingFeature
from parksync.state.policy import should_accept_update

_logger = logging.getLogger(__name__)


def upsert(features: Sequence[ParkingFeature], feature: ParkingFeature) -> list[ParkingFeature]:
    """Insert-or-replace *feature* by id, returning a new list.

    A feature with the same id is replaced in place, so the length is
    unchanged; otherwise *feature* is appended.
    """
    result = list(features)
    for index, existing in enumerate(result):
        if existing.id == feature.id:
            result[index] = feature
            return result
    result.append(feature)
    return result


def to_feature_collection(features: Iterable[ParkingFeature]) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [feature.to_geojson() for feature in features],
    }


class FeatureStore:
    """Canonical collection of parking features keyed by id.

    Given the same sequence of calls it produces the same collection.
    Insertion order is kept so render z-order stays stable across updates.
    """

    def __init__(self, *, reject_stale: bool = False) -> None:
        self._reject_stale = reject_stale
        self._features: list[ParkingFeature] = []
        self._positions: dict[int, int] = {}
        self._timestamps: dict[int, datetime] = {}

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._positions

    @property
    def features(self) -> tuple[ParkingFeature, ...]:
        return tuple(self._features)

    def get(self, feature_id: int) -> ParkingFeature | None:
        position = self._positions.get(feature_id)
        if position is None:
            return None
        return self._features[position]

    def clear(self) -> None:
        self._features.clear()
        self._positions.clear()
        self._timestamps.clear()

    def seed(self, features: Iterable[ParkingFeature]) -> None:
        """Replace the whole collection with a snapshot.

        Duplicate ids in the snapshot collapse to the last occurrence.
        """
        self.clear()
        duplicates = 0
        for feature in features:
            if feature.id in self._positions:
                duplicates += 1
            self._put(feature)
        if duplicates:
            _logger.warning("Snapshot contained %d duplicate id(s); kept last occurrence", duplicates)

    def upsert(self, feature: ParkingFeature, *, timestamp: datetime | None = None) -> bool:
        """Apply one feature update. Returns ``False`` if the policy rejected it."""
        if not should_accept_update(
            cached_timestamp=self._timestamps.get(feature.id),
            incoming_timestamp=timestamp,
            reject_stale=self._reject_stale,
        ):
            _logger.debug(
                "Rejected stale update for id=%s (incoming=%s, applied=%s)",
                feature.id,
                timestamp,
                self._timestamps.get(feature.id),
            )
            return False

        self._put(feature)
        if timestamp is not None:
            # Never move the applied timestamp backwards.
            cached = self._timestamps.get(feature.id)
            self._timestamps[feature.id] = timestamp if cached is None else max(cached, timestamp)
        return True

    def _put(self, feature: ParkingFeature) -> None:
        position = self._positions.get(feature.id)
        if position is None:
            self._positions[feature.id] = len(self._features)
            self._features.append(feature)
        else:
            self._features[position] = feature

    def to_geojson(self) -> dict[str, Any]:
        """Render-facing FeatureCollection; a fresh copy on every call."""
        return to_feature_collection(self._features)
