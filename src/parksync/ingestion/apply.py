"""Ingestion application helpers.

Both ingestion paths share the same steps:

- validate the raw row into a :class:`ParkingRecord`
- transform its flat coordinates into a ring
- build the :class:`ParkingFeature` and hand it to the store
"""

from __future__ import annotations

import logging

from parksync.geometry import coordinates_to_ring
from parksync.models import ChangeEvent, ChangeKind, ParkingFeature, ParkingRecord, ParkingStatus
from parksync.state.store import FeatureStore

_logger = logging.getLogger(__name__)


def build_feature(record: ParkingRecord) -> ParkingFeature:
    """Build the render-ready feature for *record*."""
    if record.status is ParkingStatus.UNKNOWN:
        _logger.warning("Unknown status %r for space id=%s", record.raw_status, record.id)
    return ParkingFeature(
        id=record.id,
        status=record.status,
        ring=coordinates_to_ring(record.coordinates),
    )


def feature_from_change(event: ChangeEvent) -> ParkingFeature | None:
    """Feature carried by a change event, or ``None`` when there is none.

    DELETE events never produce a feature, so a deleted space stays in the
    collection.
    """
    if event.kind is ChangeKind.DELETE or event.new is None:
        _logger.debug("Change %s for id=%s carries no row; ignored", event.kind, event.record_id)
        return None
    return build_feature(event.new)


def apply_change(store: FeatureStore, event: ChangeEvent) -> bool:
    """Build and apply a change event to *store*. Returns whether it was accepted."""
    feature = feature_from_change(event)
    if feature is None:
        return False
    return store.upsert(feature, timestamp=event.commit_timestamp)
