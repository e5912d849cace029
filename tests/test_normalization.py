from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from ridecache.normalize import is_sentinel, normalize_timestamp_seconds, parse_timestamp, safe_float


def test_placeholders_are_sentinels() -> None:
    for value in (None, "", " -- ", "NaN", float("nan")):
        assert is_sentinel(value)
    assert not is_sentinel(0)
    assert not is_sentinel([])


def test_safe_float() -> None:
    assert safe_float("7.5") == 7.5
    assert safe_float("--") is None
    assert safe_float("far") is None
    assert safe_float(True) is None


def test_timestamp_milliseconds_normalized_to_seconds() -> None:
    assert normalize_timestamp_seconds(1_767_225_600_000) == 1_767_225_600
    assert normalize_timestamp_seconds(1_767_225_600) == 1_767_225_600
    assert normalize_timestamp_seconds(0) is None


def test_parse_timestamp_converts_offset_iso_to_utc() -> None:
    parsed = parse_timestamp("2026-01-01T09:00:00+01:00")
    assert parsed == datetime(2026, 1, 1, 8, 0, tzinfo=UTC)
    assert parsed is not None and parsed.utcoffset() == timedelta(0)


def test_parse_timestamp_naive_datetime_assumed_utc() -> None:
    assert parse_timestamp(datetime(2026, 1, 1)) == datetime(2026, 1, 1, tzinfo=UTC)
    aware = datetime(2026, 1, 1, tzinfo=timezone(timedelta(hours=2)))
    assert parse_timestamp(aware) == datetime(2025, 12, 31, 22, 0, tzinfo=UTC)


def test_parse_timestamp_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_timestamp("yesterday")
    with pytest.raises(ValueError):
        parse_timestamp(-5)
