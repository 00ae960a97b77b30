"""Base model and status enum for parking rows.

Every row model inherits from :class:`ParkSyncBaseModel` which provides
a frozen, extra-tolerant config and a ``raw`` dict that captures the
original payload.

:class:`ParkingStatus` is the canonical status vocabulary. Strings the
backend sends that have no mapped member resolve to ``UNKNOWN`` instead
of raising ``ValueError``, so a stray ``"open"`` is never silently
counted as free or occupied.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ParkingStatus(StrEnum):
    FREE = "free"
    OCCUPIED = "occupied"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> ParkingStatus:
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.UNKNOWN


class ParkSyncBaseModel(BaseModel):
    """Base for backend row models.

    Stashes the original dict in ``raw`` unless the caller passes one.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)
    """Original payload dict."""

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        if "raw" in values:
            return values
        return {**values, "raw": dict(values)}
