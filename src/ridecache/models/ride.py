"""Ride record and ride memory models."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any

from pydantic import BeforeValidator, Field, field_validator

from ridecache.models._base import RideBaseModel, RideMetric, RideTimestamp
from ridecache.models.geo import GeoPoint


class RideStatus(StrEnum):
    """Lifecycle state of a ride.

    Values the sync feed sends that have no mapped member resolve to
    ``UNKNOWN`` instead of raising ``ValueError``.
    """

    IN_PROGRESS = "inProgress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> RideStatus:
        if isinstance(value, str):
            folded = value.strip().replace("_", "").replace("-", "").lower()
            for member in cls:
                if member.value.lower() == folded:
                    return member
        return cls.UNKNOWN


def _coerce_status(value: Any) -> Any:
    return RideStatus(value) if isinstance(value, str) else value


RideStatusField = Annotated[RideStatus, BeforeValidator(_coerce_status)]
"""Annotated type that maps spelling variants and unknown statuses through ``RideStatus._missing_``."""


class RideMemory(RideBaseModel):
    """A photo captured during a ride.

    Parameters
    ----------
    image_url : str
        Download URL of the captured image.
    title : str
        User-entered caption.
    description : str or None
        Optional longer note.
    captured_at : datetime or None
        When the photo was taken.
    coordinates : GeoPoint or None
        Where the photo was taken.
    memory_id : str or None
        Identifier assigned by the remote document store.
    """

    image_url: str
    title: str = ""
    description: str | None = None
    captured_at: RideTimestamp | None = None
    coordinates: GeoPoint | None = None
    memory_id: str | None = None


class RideRecord(RideBaseModel):
    """The single current ride cached for a user.

    Derived metrics are ``None`` until computed; ``None`` means unknown,
    not zero. ``route_points`` and ``ride_memories`` keep insertion order,
    which is chronological order.
    """

    id: str
    user_id: str
    vehicle_id: str | None = None
    status: RideStatusField = RideStatus.IN_PROGRESS
    started_at: RideTimestamp
    ended_at: RideTimestamp | None = None
    start_coordinates: GeoPoint
    end_coordinates: GeoPoint | None = None
    route_points: tuple[GeoPoint, ...] = ()
    total_distance: RideMetric = Field(default=None, ge=0)
    total_time: RideMetric = Field(default=None, ge=0)
    top_speed: RideMetric = Field(default=None, ge=0)
    average_speed: RideMetric = Field(default=None, ge=0)
    total_gem_coins: RideMetric = Field(default=None, ge=0, alias="totalGEMCoins")
    ride_title: str | None = None
    ride_description: str | None = None
    ride_memories: tuple[RideMemory, ...] = ()

    @field_validator("user_id")
    @classmethod
    def _normalize_user_id(cls, value: str) -> str:
        user_id = value.strip()
        if not user_id:
            raise ValueError("user_id must be non-empty")
        return user_id

    @property
    def is_in_progress(self) -> bool:
        return self.status in (RideStatus.IN_PROGRESS, RideStatus.PAUSED)

    @property
    def duration_seconds(self) -> float | None:
        """Elapsed seconds between start and end, ``None`` while still riding."""
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()
