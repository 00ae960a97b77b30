"""Change-feed event model.

Realtime delivers ``postgres_changes`` payloads shaped like::

    {"schema": "public", "table": "parkingData", "type": "UPDATE",
     "commit_timestamp": "2026-01-01T00:00:00Z",
     "record": {...}, "old_record": {...}}

The client-side envelope (``event``/``new``/``old``) is accepted as well.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from parksync.models._base import ParkSyncBaseModel
from parksync.models.record import ParkingRecord


class ChangeKind(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "*"


class ChangeEvent(ParkSyncBaseModel):
    """A single per-row change notification."""

    kind: ChangeKind = Field(validation_alias=AliasChoices("type", "eventType", "event", "kind"))
    schema_name: str = Field(default="", validation_alias=AliasChoices("schema", "schema_name"))
    table: str = ""
    new: ParkingRecord | None = Field(default=None, validation_alias=AliasChoices("record", "new"))
    old: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("old_record", "old"))
    commit_timestamp: datetime | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _upper_kind(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("new", mode="before")
    @classmethod
    def _empty_record_is_none(cls, value: Any) -> Any:
        # DELETE payloads carry ``record: {}``.
        if value == {}:
            return None
        return value

    @field_validator("old", mode="before")
    @classmethod
    def _none_old_is_empty(cls, value: Any) -> Any:
        return value or {}

    @field_validator("commit_timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def record_id(self) -> int | None:
        """Id of the affected row, from ``new`` or, for deletes, ``old``."""
        if self.new is not None:
            return self.new.id
        value = self.old.get("id")
        return value if isinstance(value, int) else None
