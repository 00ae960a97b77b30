from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from parksync.exceptions import ParkSyncTransportError
from parksync.ingestion.snapshot import SnapshotLoader, build_features
from parksync.models import ParkingStatus


@dataclass
class FakeTransport:
    rows: list[dict[str, Any]] = field(default_factory=list)
    error: ParkSyncTransportError | None = None
    calls: int = 0

    async def fetch_rows(self) -> list[dict[str, Any]]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.rows


@pytest.mark.asyncio
async def test_load_snapshot_transforms_each_row() -> None:
    transport = FakeTransport(
        rows=[
            {"id": 1, "status": "free", "coordinates": [0, 0, 1, 0, 1, 1, 0, 1]},
            {"id": 2, "status": "occupied", "coordinates": [2, 0, 3, 0, 3, 1, 2, 1]},
        ]
    )

    features = await SnapshotLoader(transport).load_snapshot()

    assert transport.calls == 1
    assert [f.id for f in features] == [1, 2]
    assert features[0].ring == [[0, 0], [1, 0], [1, 1], [0, 1]]
    assert features[1].status is ParkingStatus.OCCUPIED


@pytest.mark.asyncio
async def test_load_snapshot_raises_transport_error_without_retry() -> None:
    transport = FakeTransport(error=ParkSyncTransportError("HTTP 503", status_code=503, endpoint="/parkingData"))

    with pytest.raises(ParkSyncTransportError) as excinfo:
        await SnapshotLoader(transport).load_snapshot()

    assert excinfo.value.status_code == 503
    assert transport.calls == 1


def test_build_features_skips_malformed_rows(caplog: pytest.LogCaptureFixture) -> None:
    features = build_features(
        [
            {"id": 1, "status": "free", "coordinates": [0, 0, 1, 1]},
            {"status": "free", "coordinates": [0, 0]},
            {"id": 3, "status": "free", "coordinates": None},
            {"id": 4, "status": "open", "coordinates": [0, 0, 1, 1, 2]},
        ]
    )

    assert [f.id for f in features] == [1, 4]
    assert features[1].status is ParkingStatus.UNKNOWN
    assert features[1].ring == [[0, 0], [1, 1]]
    assert "Unknown status 'open'" in caplog.text
