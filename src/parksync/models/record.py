"""Parking row model."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from parksync.models._base import ParkingStatus, ParkSyncBaseModel


class ParkingRecord(ParkSyncBaseModel):
    """One parking space as stored in the backend table.

    Parameters
    ----------
    id : int
        Primary key of the space.
    status : ParkingStatus
        Occupancy status. Unmapped strings become ``UNKNOWN``; the
        original string stays in ``raw["status"]``.
    coordinates : list of float
        Flat interleaved ``x, y`` values describing one closed ring.
    """

    id: int
    status: ParkingStatus = ParkingStatus.UNKNOWN
    coordinates: list[float] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> ParkingStatus:
        if isinstance(value, ParkingStatus):
            return value
        if value is None:
            return ParkingStatus.UNKNOWN
        return ParkingStatus(str(value))

    @property
    def raw_status(self) -> Any:
        """Status exactly as the backend sent it."""
        return self.raw.get("status", self.status.value)
