"""Tests for remote sync message decoding and ingestion."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from ridecache.config import SyncConfig
from ridecache.datasource import RideLocalDatasource
from ridecache.exceptions import SyncPayloadError
from ridecache.models.ride import RideStatus
from ridecache.sync.ingest import SyncIngestor
from ridecache.sync.messages import SyncEventType, SyncMessage, parse_sync_payload
from ridecache.sync.mqtt import RideSyncCoordinator, RideSyncRuntime

RIDE_PAYLOAD: dict[str, Any] = {
    "id": "ride-1",
    "userId": "user-1",
    "status": "inProgress",
    "startedAt": 1_767_225_600_000,
    "startCoordinates": {"latitude": 52.0, "longitude": 4.0},
    "routePoints": [],
    "totalDistance": 5.0,
}


def _saved() -> bytes:
    return json.dumps({"event": "rideSaved", "userId": "user-1", "ride": RIDE_PAYLOAD}).encode()


def test_parse_saved_message() -> None:
    message = parse_sync_payload(_saved())

    assert message.event == SyncEventType.RIDE_SAVED
    assert message.ride is not None
    assert message.ride.total_distance == 5.0


def test_parse_updated_message_keeps_wire_fields() -> None:
    message = parse_sync_payload(
        {"event": "rideUpdated", "userId": "user-1", "fields": {"routePoints": [{"latitude": 1, "longitude": 2}]}}
    )

    assert message.changes == {"routePoints": [{"latitude": 1, "longitude": 2}]}


@pytest.mark.parametrize(
    "payload",
    [
        b"\xff\xfe",
        "not json",
        "[1, 2]",
        json.dumps({"event": "rideExploded", "userId": "user-1"}),
        json.dumps({"event": "rideSaved", "userId": "user-1"}),
        json.dumps({"event": "rideUpdated", "userId": "user-1"}),
        json.dumps({"event": "rideCleared", "userId": " "}),
        json.dumps({"event": "rideSaved", "userId": "user-2", "ride": RIDE_PAYLOAD}),
    ],
)
def test_invalid_payloads_rejected(payload: bytes | str) -> None:
    with pytest.raises(SyncPayloadError):
        parse_sync_payload(payload)


@pytest.mark.asyncio
async def test_handle_dispatches_to_datasource() -> None:
    rides = RideLocalDatasource()
    ingestor = SyncIngestor(rides)

    await ingestor.handle(parse_sync_payload(_saved()))
    await ingestor.handle(
        parse_sync_payload({"event": "rideUpdated", "userId": "user-1", "fields": {"status": "completed"}})
    )
    stored = await rides.get_ride("user-1")
    assert stored is not None
    assert stored.status == RideStatus.COMPLETED

    await ingestor.handle(SyncMessage(event=SyncEventType.RIDE_CLEARED, user_id="user-1"))
    assert await rides.get_ride("user-1") is None


@pytest.mark.asyncio
async def test_worker_applies_in_order_and_drops_bad_messages() -> None:
    rides = RideLocalDatasource()
    ingestor = SyncIngestor(rides)
    ingestor.start()

    ingestor.submit(parse_sync_payload(_saved()))
    ingestor.submit(
        parse_sync_payload({"event": "rideUpdated", "userId": "user-1", "fields": {"routePoints": ["bad"]}})
    )
    ingestor.submit(
        parse_sync_payload({"event": "rideUpdated", "userId": "user-1", "fields": {"totalDistance": 8.0}})
    )
    await asyncio.wait_for(ingestor.stop(), timeout=1.0)

    stored = await rides.get_ride("user-1")
    assert stored is not None
    assert stored.total_distance == 8.0
    assert stored.route_points == ()
    assert ingestor.pending == 0


@pytest.mark.asyncio
async def test_runtime_dispatch_schedules_on_loop() -> None:
    received: list[SyncMessage] = []
    runtime = RideSyncRuntime(loop=asyncio.get_running_loop(), on_message=received.append)

    runtime.dispatch_payload("rides/user-1/current", _saved())
    runtime.dispatch_payload("rides/user-1/current", b"garbage")
    await asyncio.sleep(0)

    assert [m.event for m in received] == [SyncEventType.RIDE_SAVED]
    assert not runtime.is_running


@pytest.mark.asyncio
async def test_coordinator_disabled_does_not_connect() -> None:
    coordinator = RideSyncCoordinator(SyncConfig(enabled=False), SyncIngestor(RideLocalDatasource()))

    await coordinator.start(["user-1"])

    assert coordinator.runtime is None
    await coordinator.stop()


def test_topic_template() -> None:
    assert SyncConfig().topic_for("user-1") == "rides/user-1/current"
    assert SyncConfig(topic_template="t/{user_id}").topic_for("u") == "t/u"


class _ExplodingClearDatasource(RideLocalDatasource):
    async def clear_ride(self, user_id: str) -> None:
        raise RuntimeError("disk on fire")


@pytest.mark.asyncio
async def test_worker_survives_unexpected_errors() -> None:
    rides = _ExplodingClearDatasource()
    ingestor = SyncIngestor(rides)
    ingestor.start()

    ingestor.submit(SyncMessage(event=SyncEventType.RIDE_CLEARED, user_id="user-1"))
    ingestor.submit(parse_sync_payload(_saved()))
    await asyncio.wait_for(ingestor.stop(), timeout=1.0)

    assert await rides.get_ride("user-1") is not None
    assert ingestor.pending == 0


@pytest.mark.asyncio
async def test_handle_rejects_message_without_body() -> None:
    ingestor = SyncIngestor(RideLocalDatasource())
    message = SyncMessage.model_construct(event=SyncEventType.RIDE_UPDATED, user_id="user-1", ride=None, changes=None)

    with pytest.raises(SyncPayloadError):
        await ingestor.handle(message)


class _RefusingClient:
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.loop_started = False

    def enable_logger(self, logger: Any) -> None:
        pass

    def username_pw_set(self, username: str, password: str | None) -> None:
        pass

    def tls_set(self) -> None:
        pass

    def connect(self, host: str, port: int, keepalive: int = 60) -> None:
        raise ConnectionRefusedError("broker down")

    def loop_start(self) -> None:
        self.loop_started = True


@pytest.mark.asyncio
async def test_coordinator_connect_failure_leaves_nothing_running(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("ridecache.sync.mqtt.mqtt.Client", _RefusingClient)
    ingestor = SyncIngestor(RideLocalDatasource())
    coordinator = RideSyncCoordinator(SyncConfig(enabled=True, tls=False), ingestor)

    with pytest.raises(ConnectionRefusedError):
        await coordinator.start(["user-1"])

    assert coordinator.runtime is None
    assert not ingestor.running
    await coordinator.stop()
