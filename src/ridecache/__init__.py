"""ridecache - Async local cache for the current ride of each user."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ridecache")
except PackageNotFoundError:
    __version__ = "0+local"
from ridecache.cache.reconciler import FieldPatchReconciler
from ridecache.cache.registry import RideSubscription, SubscriptionRegistry
from ridecache.cache.store import RideCacheStore
from ridecache.config import RideCacheConfig, SyncConfig
from ridecache.datasource import RideLocalDatasource
from ridecache.exceptions import (
    GeocodingError,
    ReconciliationError,
    RideCacheConfigError,
    RideCacheError,
    RideNotFoundError,
    StorageError,
    SyncPayloadError,
)
from ridecache.geocoding import (
    LocationService,
    NominatimLocationService,
    RideAddresses,
    resolve_address,
    resolve_ride_addresses,
)
from ridecache.models import (
    GeoPoint,
    RideFieldPatch,
    RideMemory,
    RideRecord,
    RideStatus,
)
from ridecache.storage import FileBackend, KeyValueBackend, MemoryBackend

__all__ = [
    "__version__",
    "FieldPatchReconciler",
    "FileBackend",
    "GeoPoint",
    "GeocodingError",
    "KeyValueBackend",
    "LocationService",
    "MemoryBackend",
    "NominatimLocationService",
    "ReconciliationError",
    "RideAddresses",
    "RideCacheConfig",
    "RideCacheConfigError",
    "RideCacheError",
    "RideCacheStore",
    "RideFieldPatch",
    "RideLocalDatasource",
    "RideMemory",
    "RideNotFoundError",
    "RideRecord",
    "RideStatus",
    "RideSubscription",
    "StorageError",
    "SubscriptionRegistry",
    "SyncConfig",
    "SyncPayloadError",
    "resolve_address",
    "resolve_ride_addresses",
]
