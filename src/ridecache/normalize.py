"""Normalization helpers.

Centralizes defensive parsing of loosely-typed values arriving from the
remote sync feed (numbers as strings, epoch timestamps in seconds or
milliseconds, placeholder strings).
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

# Placeholder strings the sync feed uses for "not available".
_SENTINELS = frozenset({"", "--", "NaN", "nan", "null"})

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1e11


def is_sentinel(value: Any) -> bool:
    """Return ``True`` when *value* should be treated as absent."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() in _SENTINELS:
        return True
    return isinstance(value, float) and math.isnan(value)


def safe_float(value: Any) -> float | None:
    if is_sentinel(value) or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def normalize_timestamp_seconds(value: Any) -> float | None:
    """Normalize epoch timestamps to seconds.

    - Empty/missing -> None
    - <= 0 -> None
    - Milliseconds (> 1e11) -> seconds
    """

    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > _MS_THRESHOLD:
        ts /= 1000.0
    return ts


def parse_timestamp(value: Any) -> datetime | None:
    """Convert a wire timestamp into a timezone-aware UTC datetime.

    Accepts ``datetime`` instances (naive ones are assumed UTC), ISO-8601
    strings, and epoch numbers in seconds **or** milliseconds. Mappings of
    the ``{"seconds": .., "nanoseconds": ..}`` form emitted by document
    store exports are accepted too. Returns ``None`` for absent values.
    """
    if is_sentinel(value):
        return None
    if isinstance(value, datetime):
        return value.astimezone(UTC) if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, dict) and "seconds" in value:
        seconds = safe_float(value.get("seconds")) or 0.0
        nanos = safe_float(value.get("nanoseconds")) or 0.0
        return datetime.fromtimestamp(seconds + nanos / 1e9, tz=UTC)
    if isinstance(value, str):
        numeric = safe_float(value)
        if numeric is None:
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError as exc:
                raise ValueError(f"unrecognized timestamp: {value!r}") from exc
            return parsed.astimezone(UTC) if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
        value = numeric
    ts = normalize_timestamp_seconds(value)
    if ts is None:
        raise ValueError(f"unrecognized timestamp: {value!r}")
    return datetime.fromtimestamp(ts, tz=UTC)
