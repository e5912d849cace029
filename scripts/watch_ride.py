#!/usr/bin/env python3
"""Print live current-ride updates for one user.

Opens a file-backed ride cache, replays the cached ride of the given
user, then prints every subsequent save, patch or clear until
interrupted. With ``--sync`` it also starts the MQTT sync listener so
changes published by the remote document store are applied locally.

Usage
-----
::

    export RIDECACHE_STORAGE_DIR="$HOME/.cache/rides"
    python scripts/watch_ride.py USER_ID

Options::

    --storage-dir DIR    Cache directory (default: $RIDECACHE_STORAGE_DIR)
    --sync               Apply updates from the MQTT sync feed
    --addresses          Resolve start/end addresses for each update
    --json               Print raw cached documents
    -v, --verbose        Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses
import logging
import signal
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from ridecache import (  # noqa: E402
    NominatimLocationService,
    RideCacheConfig,
    RideLocalDatasource,
    RideRecord,
    resolve_ride_addresses,
)
from ridecache.sync import RideSyncCoordinator, SyncIngestor  # noqa: E402


def _metric(value: float | None, unit: str, digits: int = 2) -> str:
    return "unknown" if value is None else f"{value:.{digits}f} {unit}"


def _describe(ride: RideRecord) -> list[str]:
    return [
        f"ride {ride.id} [{ride.status}] {ride.ride_title or 'Untitled Ride'}",
        f"  started   {ride.started_at.isoformat()}",
        f"  ended     {ride.ended_at.isoformat() if ride.ended_at else 'ongoing'}",
        f"  distance  {_metric(ride.total_distance, 'km')}",
        f"  time      {_metric(ride.total_time, 'min')}",
        f"  top speed {_metric(ride.top_speed, 'km/h', 1)}",
        f"  route     {len(ride.route_points)} points",
        f"  memories  {len(ride.ride_memories)}",
    ]


async def _watch(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {}
    if args.storage_dir:
        overrides["storage_dir"] = args.storage_dir
    config = RideCacheConfig.from_env(**overrides)
    if not config.storage_dir:
        print("No storage directory; set RIDECACHE_STORAGE_DIR or pass --storage-dir", file=sys.stderr)
        return 2

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    async with contextlib.AsyncExitStack() as stack:
        rides = await stack.enter_async_context(RideLocalDatasource(config))
        geocoder = None
        if args.addresses:
            geocoder = await stack.enter_async_context(NominatimLocationService(config))
        if args.sync:
            coordinator = RideSyncCoordinator(dataclasses.replace(config.sync, enabled=True), SyncIngestor(rides))
            await coordinator.start([args.user_id])
            stack.push_async_callback(coordinator.stop)

        updates = await rides.watch_current_ride(args.user_id)

        async def _print_updates() -> None:
            async for ride in updates:
                if ride is None:
                    print("no current ride")
                    continue
                if args.json:
                    print(ride.model_dump_json(by_alias=True, indent=2))
                    continue
                for line in _describe(ride):
                    print(line)
                if geocoder is not None:
                    addresses = await resolve_ride_addresses(
                        geocoder, ride, placeholder=config.address_placeholder
                    )
                    print(f"  from      {addresses.start}")
                    print(f"  to        {addresses.end or 'Ongoing'}")

        printer = asyncio.create_task(_print_updates())
        await stop.wait()
        rides.dispose_user_stream(args.user_id)
        await printer
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("user_id", help="User whose current ride to watch")
    parser.add_argument("--storage-dir", help="Cache directory")
    parser.add_argument("--sync", action="store_true", help="Apply updates from the MQTT sync feed")
    parser.add_argument("--addresses", action="store_true", help="Resolve start/end addresses")
    parser.add_argument("--json", action="store_true", help="Print raw cached documents")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    return asyncio.run(_watch(args))


if __name__ == "__main__":
    sys.exit(main())
