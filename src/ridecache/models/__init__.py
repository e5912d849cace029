"""Pydantic models for cached ride documents."""

from ridecache.models._base import RideBaseModel, RideTimestamp
from ridecache.models.geo import GeoPoint
from ridecache.models.patch import (
    AverageSpeedPatch,
    EndCoordinatesPatch,
    EndedAtPatch,
    FieldPatchBase,
    RideDescriptionPatch,
    RideFieldPatch,
    RideMemoriesPatch,
    RideTitlePatch,
    RoutePointsPatch,
    StatusPatch,
    TopSpeedPatch,
    TotalDistancePatch,
    TotalGemCoinsPatch,
    TotalTimePatch,
    apply_field_patches,
    parse_field_patch,
    parse_field_patches,
    patchable_fields,
)
from ridecache.models.ride import RideMemory, RideRecord, RideStatus

__all__ = [
    "AverageSpeedPatch",
    "EndCoordinatesPatch",
    "EndedAtPatch",
    "FieldPatchBase",
    "GeoPoint",
    "RideBaseModel",
    "RideDescriptionPatch",
    "RideFieldPatch",
    "RideMemoriesPatch",
    "RideMemory",
    "RideRecord",
    "RideStatus",
    "RideTimestamp",
    "RideTitlePatch",
    "RoutePointsPatch",
    "StatusPatch",
    "TopSpeedPatch",
    "TotalDistancePatch",
    "TotalGemCoinsPatch",
    "TotalTimePatch",
    "apply_field_patches",
    "parse_field_patch",
    "parse_field_patches",
    "patchable_fields",
]
