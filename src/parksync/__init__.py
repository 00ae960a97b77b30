"""parksync - live parking-space occupancy synchronized onto a map collection."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("parksync")
except PackageNotFoundError:
    __version__ = "0+local"
from parksync.config import ParkSyncConfig
from parksync.engine import ParkingSyncEngine, SnapshotState
from parksync.exceptions import (
    ParkSyncConfigError,
    ParkSyncError,
    ParkSyncSubscriptionError,
    ParkSyncTransportError,
)
from parksync.geometry import coordinates_to_ring, transform_coordinates
from parksync.models import (
    ChangeEvent,
    ChangeKind,
    ParkingFeature,
    ParkingRecord,
    ParkingStatus,
)
from parksync.render import CallbackRenderSink, GeoJsonFileSink, RenderSink
from parksync.state.store import FeatureStore, upsert

__all__ = [
    "__version__",
    "CallbackRenderSink",
    "ChangeEvent",
    "ChangeKind",
    "FeatureStore",
    "GeoJsonFileSink",
    "ParkingFeature",
    "ParkingRecord",
    "ParkingStatus",
    "ParkingSyncEngine",
    "ParkSyncConfig",
    "ParkSyncConfigError",
    "ParkSyncError",
    "ParkSyncSubscriptionError",
    "ParkSyncTransportError",
    "RenderSink",
    "SnapshotState",
    "coordinates_to_ring",
    "transform_coordinates",
    "upsert",
]
