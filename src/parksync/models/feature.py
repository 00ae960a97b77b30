"""Render-ready parking feature."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from parksync.models._base import ParkingStatus


class ParkingFeature(BaseModel):
    """A parking space in render-ready form: identity, status and one ring."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int
    status: ParkingStatus
    ring: list[list[float]]

    def to_geojson(self) -> dict[str, Any]:
        """GeoJSON ``Feature`` with a single-ring ``Polygon`` geometry."""
        return {
            "type": "Feature",
            "geometry": {
                "type": "Polygon",
                "coordinates": [[list(point) for point in self.ring]],
            },
            "properties": {
                "id": self.id,
                "status": self.status.value,
            },
        }
