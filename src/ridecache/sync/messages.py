"""Sync feed message envelope."""

from __future__ import annotations

import json
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ridecache.exceptions import SyncPayloadError
from ridecache.models.ride import RideRecord


class SyncEventType(StrEnum):
    RIDE_SAVED = "rideSaved"
    RIDE_UPDATED = "rideUpdated"
    RIDE_CLEARED = "rideCleared"


class SyncMessage(BaseModel):
    """A decoded change notification from the remote document store.

    ``ride`` carries the full record for ``rideSaved``; ``changes`` (wire
    key ``fields``) carries the wire-shaped partial update for
    ``rideUpdated``.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    event: SyncEventType
    user_id: str
    ride: RideRecord | None = None
    changes: dict[str, Any] | None = Field(default=None, alias="fields")

    @field_validator("user_id")
    @classmethod
    def _normalize_user_id(cls, value: str) -> str:
        user_id = value.strip()
        if not user_id:
            raise ValueError("user_id must be non-empty")
        return user_id

    @model_validator(mode="after")
    def _check_body(self) -> SyncMessage:
        if self.event == SyncEventType.RIDE_SAVED:
            if self.ride is None:
                raise ValueError("rideSaved message without ride")
            if self.ride.user_id != self.user_id:
                raise ValueError(f"ride belongs to {self.ride.user_id!r}, message addressed to {self.user_id!r}")
        if self.event == SyncEventType.RIDE_UPDATED and self.changes is None:
            raise ValueError("rideUpdated message without fields")
        return self


def parse_sync_payload(payload: bytes | str | Mapping[str, Any]) -> SyncMessage:
    """Decode a raw sync payload (JSON bytes/text or an already-decoded dict)."""
    if isinstance(payload, (bytes, str)):
        try:
            decoded = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise SyncPayloadError(f"Sync payload is not JSON: {exc}") from exc
    else:
        decoded = dict(payload)
    if not isinstance(decoded, dict):
        raise SyncPayloadError("Sync payload decoded to non-object JSON")
    try:
        return SyncMessage.model_validate(decoded)
    except ValidationError as exc:
        raise SyncPayloadError(f"Invalid sync message: {exc}") from exc
