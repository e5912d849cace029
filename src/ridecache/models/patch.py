"""Typed field patches for the current ride.

A patch request is a list of :data:`RideFieldPatch` variants, one variant
per patchable field, discriminated on ``field`` (the wire name). Loose
``{name: value}`` maps received from the sync feed are converted with
:func:`parse_field_patches`; that conversion is the single place where
wire-shaped values are normalized into typed ones.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ridecache.exceptions import ReconciliationError
from ridecache.models._base import RideTimestamp
from ridecache.models.geo import GeoPoint
from ridecache.models.ride import RideMemory, RideRecord, RideStatusField

_logger = logging.getLogger(__name__)


class FieldPatchBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    attribute: ClassVar[str]
    """Name of the :class:`RideRecord` attribute the patch replaces."""


class StatusPatch(FieldPatchBase):
    attribute: ClassVar[str] = "status"
    field: Literal["status"] = "status"
    value: RideStatusField


class EndedAtPatch(FieldPatchBase):
    attribute: ClassVar[str] = "ended_at"
    field: Literal["endedAt"] = "endedAt"
    value: RideTimestamp


class EndCoordinatesPatch(FieldPatchBase):
    attribute: ClassVar[str] = "end_coordinates"
    field: Literal["endCoordinates"] = "endCoordinates"
    value: GeoPoint


class TotalDistancePatch(FieldPatchBase):
    attribute: ClassVar[str] = "total_distance"
    field: Literal["totalDistance"] = "totalDistance"
    value: float = Field(ge=0)


class TotalTimePatch(FieldPatchBase):
    attribute: ClassVar[str] = "total_time"
    field: Literal["totalTime"] = "totalTime"
    value: float = Field(ge=0)


class TotalGemCoinsPatch(FieldPatchBase):
    attribute: ClassVar[str] = "total_gem_coins"
    field: Literal["totalGEMCoins"] = "totalGEMCoins"
    value: float = Field(ge=0)


class TopSpeedPatch(FieldPatchBase):
    attribute: ClassVar[str] = "top_speed"
    field: Literal["topSpeed"] = "topSpeed"
    value: float = Field(ge=0)


class AverageSpeedPatch(FieldPatchBase):
    attribute: ClassVar[str] = "average_speed"
    field: Literal["averageSpeed"] = "averageSpeed"
    value: float = Field(ge=0)


class RideTitlePatch(FieldPatchBase):
    attribute: ClassVar[str] = "ride_title"
    field: Literal["rideTitle"] = "rideTitle"
    value: str


class RideDescriptionPatch(FieldPatchBase):
    attribute: ClassVar[str] = "ride_description"
    field: Literal["rideDescription"] = "rideDescription"
    value: str


class RideMemoriesPatch(FieldPatchBase):
    attribute: ClassVar[str] = "ride_memories"
    field: Literal["rideMemories"] = "rideMemories"
    value: tuple[RideMemory, ...]


class RoutePointsPatch(FieldPatchBase):
    attribute: ClassVar[str] = "route_points"
    field: Literal["routePoints"] = "routePoints"
    value: tuple[GeoPoint, ...]


RideFieldPatch = Annotated[
    StatusPatch
    | EndedAtPatch
    | EndCoordinatesPatch
    | TotalDistancePatch
    | TotalTimePatch
    | TotalGemCoinsPatch
    | TopSpeedPatch
    | AverageSpeedPatch
    | RideTitlePatch
    | RideDescriptionPatch
    | RideMemoriesPatch
    | RoutePointsPatch,
    Field(discriminator="field"),
]

_PATCH_ADAPTER: TypeAdapter[RideFieldPatch] = TypeAdapter(RideFieldPatch)

_PATCH_TYPES: tuple[type[FieldPatchBase], ...] = (
    StatusPatch,
    EndedAtPatch,
    EndCoordinatesPatch,
    TotalDistancePatch,
    TotalTimePatch,
    TotalGemCoinsPatch,
    TopSpeedPatch,
    AverageSpeedPatch,
    RideTitlePatch,
    RideDescriptionPatch,
    RideMemoriesPatch,
    RoutePointsPatch,
)

# Wire name and snake_case attribute name both resolve to the wire name.
_FIELD_NAMES: dict[str, str] = {}
for _patch_type in _PATCH_TYPES:
    _wire_name = _patch_type.model_fields["field"].default
    _FIELD_NAMES[_wire_name] = _wire_name
    _FIELD_NAMES[_patch_type.attribute] = _wire_name

# Sequence fields whose elements may arrive typed or as wire mappings.
_ELEMENT_TYPES: dict[str, type[BaseModel]] = {
    "rideMemories": RideMemory,
    "routePoints": GeoPoint,
}


def patchable_fields() -> frozenset[str]:
    """Wire names of every field a patch may replace."""
    return frozenset(_FIELD_NAMES.values())


def _normalize_elements(field: str, value: Any) -> list[Any]:
    """Accept a sequence of typed elements or wire mappings, element by element."""
    element_type = _ELEMENT_TYPES[field]
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
        raise ReconciliationError(
            f"{field} must be a sequence, got {type(value).__name__}",
            field=field,
        )
    elements: list[Any] = []
    for index, element in enumerate(value):
        if isinstance(element, element_type):
            elements.append(element)
        elif isinstance(element, Mapping):
            elements.append(dict(element))
        else:
            raise ReconciliationError(
                f"{field}[{index}] is neither a {element_type.__name__} nor a mapping: {type(element).__name__}",
                field=field,
            )
    return elements


def parse_field_patch(name: str, value: Any) -> RideFieldPatch | None:
    """Convert one ``name: value`` pair into its typed patch variant.

    Returns ``None`` for names that are not patchable and for ``None``
    values, which mean "keep the current value".
    """
    field = _FIELD_NAMES.get(name)
    if field is None:
        _logger.debug("Ignoring unrecognized patch field %s", name)
        return None
    if value is None:
        return None
    if field in _ELEMENT_TYPES:
        value = _normalize_elements(field, value)
    try:
        return _PATCH_ADAPTER.validate_python({"field": field, "value": value})
    except ValidationError as exc:
        raise ReconciliationError(f"Invalid value for {field}: {exc}", field=field) from exc


def parse_field_patches(fields: Mapping[str, Any]) -> list[RideFieldPatch]:
    """Convert a loose field map into typed patches, in map order."""
    patches: list[RideFieldPatch] = []
    for name, value in fields.items():
        patch = parse_field_patch(name, value)
        if patch is not None:
            patches.append(patch)
    return patches


def apply_field_patches(record: RideRecord, patches: Iterable[RideFieldPatch]) -> RideRecord:
    """Return a copy of *record* with every patch applied; later patches win."""
    update: dict[str, Any] = {}
    for patch in patches:
        update[patch.attribute] = patch.value
    if not update:
        return record
    return record.model_copy(update=update)
