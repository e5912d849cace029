"""Tests for field-patch reconciliation through the datasource."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

import pytest

from ridecache.cache.reconciler import FieldPatchReconciler
from ridecache.cache.registry import SubscriptionRegistry
from ridecache.cache.store import RideCacheStore
from ridecache.config import RideCacheConfig
from ridecache.datasource import RideLocalDatasource
from ridecache.exceptions import ReconciliationError, RideNotFoundError
from ridecache.models.geo import GeoPoint
from ridecache.models.patch import RideTitlePatch, TopSpeedPatch
from ridecache.models.ride import RideMemory, RideRecord, RideStatus
from ridecache.storage.memory import MemoryBackend


def _ride() -> RideRecord:
    return RideRecord(
        id="ride-1",
        user_id="user-1",
        vehicle_id="bike-1",
        started_at=datetime(2026, 1, 1, tzinfo=UTC),
        start_coordinates=GeoPoint(latitude=10.0, longitude=20.0),
        total_distance=5.0,
        ride_title="Commute",
    )


class _YieldingBackend(MemoryBackend):
    """Suspends on every operation so concurrent patches interleave."""

    async def read(self, key: str) -> str | None:
        await asyncio.sleep(0)
        return await super().read(key)

    async def write(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        await super().write(key, value)


@pytest.mark.asyncio
async def test_patch_replaces_only_named_field() -> None:
    rides = RideLocalDatasource()
    ride = _ride()
    await rides.save_ride(ride)

    await rides.update_ride_fields("user-1", {"totalDistance": 7.5})

    stored = await rides.get_ride("user-1")
    assert stored == ride.model_copy(update={"total_distance": 7.5})


@pytest.mark.asyncio
async def test_route_points_wire_and_typed_store_same_result() -> None:
    wire_rides = RideLocalDatasource()
    typed_rides = RideLocalDatasource()
    await wire_rides.save_ride(_ride())
    await typed_rides.save_ride(_ride())

    await wire_rides.update_ride_fields("user-1", {"routePoints": [{"latitude": 1.0, "longitude": 2.0}]})
    await typed_rides.update_ride_fields("user-1", {"routePoints": [GeoPoint(latitude=1.0, longitude=2.0)]})

    assert await wire_rides.get_ride("user-1") == await typed_rides.get_ride("user-1")


@pytest.mark.asyncio
async def test_ride_completion_patch_from_sync_feed() -> None:
    rides = RideLocalDatasource()
    await rides.save_ride(_ride())

    updated = await rides.update_ride_fields(
        "user-1",
        {
            "status": "completed",
            "endedAt": "2026-01-01T00:30:00Z",
            "endCoordinates": {"latitude": 11.0, "longitude": 21.0},
            "averageSpeed": "18.5",
            "totalGEMCoins": 12,
            "rideMemories": [{"imageUrl": "https://img.example/1.jpg", "title": "View"}],
        },
    )

    assert updated is not None
    assert updated.status == RideStatus.COMPLETED
    assert updated.duration_seconds == 1800
    assert updated.end_coordinates == GeoPoint(latitude=11.0, longitude=21.0)
    assert updated.average_speed == 18.5
    assert updated.total_gem_coins == 12.0
    assert updated.ride_memories == (RideMemory(image_url="https://img.example/1.jpg", title="View"),)
    assert await rides.get_ride("user-1") == updated


@pytest.mark.asyncio
async def test_typed_patch_variants_accepted() -> None:
    rides = RideLocalDatasource()
    await rides.save_ride(_ride())

    updated = await rides.update_ride_fields("user-1", [TopSpeedPatch(value=40.0), RideTitlePatch(value="Hills")])

    assert updated is not None
    assert (updated.top_speed, updated.ride_title) == (40.0, "Hills")


@pytest.mark.asyncio
async def test_non_patch_items_rejected() -> None:
    rides = RideLocalDatasource()
    await rides.save_ride(_ride())

    with pytest.raises(ReconciliationError):
        await rides.update_ride_fields("user-1", [("topSpeed", 40.0)])  # type: ignore[list-item]


@pytest.mark.asyncio
async def test_identity_fields_not_patchable() -> None:
    rides = RideLocalDatasource()
    ride = _ride()
    await rides.save_ride(ride)

    await rides.update_ride_fields(
        "user-1",
        {"id": "other", "userId": "user-2", "vehicleId": "car", "startCoordinates": {"latitude": 0, "longitude": 0}},
    )

    assert await rides.get_ride("user-1") == ride


@pytest.mark.asyncio
async def test_none_values_keep_current() -> None:
    rides = RideLocalDatasource()
    ride = _ride()
    await rides.save_ride(ride)

    await rides.update_ride_fields("user-1", {"rideTitle": None, "totalDistance": None})

    assert await rides.get_ride("user-1") == ride


@pytest.mark.asyncio
async def test_reconciliation_error_writes_nothing() -> None:
    rides = RideLocalDatasource()
    ride = _ride()
    await rides.save_ride(ride)

    with pytest.raises(ReconciliationError) as excinfo:
        await rides.update_ride_fields("user-1", {"totalDistance": 9.0, "routePoints": [[1.0, 2.0]]})

    assert excinfo.value.field == "routePoints"
    assert await rides.get_ride("user-1") == ride


@pytest.mark.asyncio
async def test_missing_ride_patch_is_logged_noop(caplog: pytest.LogCaptureFixture) -> None:
    rides = RideLocalDatasource()

    with caplog.at_level(logging.INFO, logger="ridecache.cache.reconciler"):
        result = await rides.update_ride_fields("user-1", {"totalDistance": 1.0})

    assert result is None
    assert await rides.get_ride("user-1") is None
    assert "no current ride" in caplog.text


@pytest.mark.asyncio
async def test_missing_ride_patch_raises_in_strict_mode() -> None:
    rides = RideLocalDatasource(RideCacheConfig(strict_patches=True))

    with pytest.raises(RideNotFoundError) as excinfo:
        await rides.update_ride_fields("user-1", {"totalDistance": 1.0})
    assert excinfo.value.user_id == "user-1"


@pytest.mark.asyncio
async def test_concurrent_patches_are_serialized_per_user() -> None:
    store = RideCacheStore(_YieldingBackend(), SubscriptionRegistry())
    reconciler = FieldPatchReconciler(store)
    await store.put("user-1", _ride())

    await asyncio.gather(
        reconciler.patch("user-1", {"topSpeed": 30.0}),
        reconciler.patch("user-1", {"averageSpeed": 15.0}),
    )

    stored = await store.get("user-1")
    assert stored is not None
    assert (stored.top_speed, stored.average_speed) == (30.0, 15.0)


@pytest.mark.asyncio
async def test_unserialized_patches_are_last_writer_wins() -> None:
    store = RideCacheStore(_YieldingBackend(), SubscriptionRegistry())
    reconciler = FieldPatchReconciler(store, serialize=False)
    await store.put("user-1", _ride())

    await asyncio.gather(
        reconciler.patch("user-1", {"topSpeed": 30.0}),
        reconciler.patch("user-1", {"averageSpeed": 15.0}),
    )

    stored = await store.get("user-1")
    assert stored is not None
    # Both read the same base record; the second write drops the first patch.
    assert (stored.top_speed, stored.average_speed) == (None, 15.0)


@pytest.mark.asyncio
async def test_per_user_locks_released_after_patches() -> None:
    store = RideCacheStore(_YieldingBackend(), SubscriptionRegistry())
    reconciler = FieldPatchReconciler(store)
    await store.put("user-1", _ride())

    await asyncio.gather(
        reconciler.patch("user-1", {"topSpeed": 30.0}),
        reconciler.patch("user-1", {"averageSpeed": 15.0}),
        reconciler.patch("user-2", {"topSpeed": 1.0}),
    )

    assert reconciler.locked_users == []


@pytest.mark.asyncio
async def test_lock_released_when_patch_fails() -> None:
    store = RideCacheStore(MemoryBackend(), SubscriptionRegistry())
    reconciler = FieldPatchReconciler(store)
    await store.put("user-1", _ride())

    with pytest.raises(ReconciliationError):
        await reconciler.patch("user-1", {"routePoints": "not a list"})

    assert reconciler.locked_users == []


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "--", "null", "NaN"])
async def test_patched_title_matches_stored_record(title: str) -> None:
    rides = RideLocalDatasource()
    await rides.save_ride(_ride())

    updated = await rides.update_ride_fields("user-1", {"rideTitle": title, "rideDescription": title})

    stored = await rides.get_ride("user-1")
    assert updated is not None
    assert updated.ride_title == title
    assert stored == updated
