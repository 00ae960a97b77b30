"""Data models for parking rows, features and change events."""

from parksync.models._base import ParkingStatus, ParkSyncBaseModel
from parksync.models.change import ChangeEvent, ChangeKind
from parksync.models.feature import ParkingFeature
from parksync.models.record import ParkingRecord

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "ParkingFeature",
    "ParkingRecord",
    "ParkingStatus",
    "ParkSyncBaseModel",
]
