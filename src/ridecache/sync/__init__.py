"""Remote sync ingestion.

This package receives current-ride changes published by the remote
document store (over MQTT) and replays them into a local datasource.
"""

from ridecache.sync.ingest import SyncIngestor
from ridecache.sync.messages import SyncEventType, SyncMessage, parse_sync_payload
from ridecache.sync.mqtt import RideSyncCoordinator, RideSyncRuntime

__all__ = [
    "RideSyncCoordinator",
    "RideSyncRuntime",
    "SyncEventType",
    "SyncIngestor",
    "SyncMessage",
    "parse_sync_payload",
]
