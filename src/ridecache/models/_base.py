"""Base model and annotated field types for cached ride documents.

Every ride model inherits from :class:`RideBaseModel` which provides:

* ``alias_generator=to_camel`` so the camelCase keys used by the app and
  the remote document store map automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``null`` keys so the
  field default is used. Strings are never rewritten: a title of ``""``
  or ``"--"`` is user text and survives a round-trip unchanged.
* ``frozen=True``: records are shared by reference between the store and
  every subscriber, so modifications go through ``model_copy(update=...)``.

Placeholder values the sync feed sends for "not available" (``"--"``,
``""``, NaN) are only mapped to ``None`` on numeric and timestamp fields,
through :data:`RideMetric` and :data:`RideTimestamp`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from ridecache.normalize import is_sentinel, parse_timestamp


def _absent_to_none(value: Any) -> Any:
    return None if is_sentinel(value) else value


RideTimestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces ISO strings and epoch seconds/ms to UTC datetimes."""

RideMetric = Annotated[float | None, BeforeValidator(_absent_to_none)]
"""Optional numeric metric; feed placeholders and NaN become ``None``."""


class RideBaseModel(BaseModel):
    """Base for ride document models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if value is not None}
