"""Geographic point model."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from ridecache.models._base import RideBaseModel


class GeoPoint(RideBaseModel):
    """A latitude/longitude pair in degrees.

    The wire shape is ``{"latitude": .., "longitude": ..}``; the short
    aliases ``lat``, ``lng`` and ``lon`` are accepted on input.
    """

    latitude: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(
        ge=-180.0,
        le=180.0,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )

    def __str__(self) -> str:
        return f"{self.latitude}, {self.longitude}"

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)
