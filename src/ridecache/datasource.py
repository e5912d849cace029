"""Local ride datasource: the public entry point of the cache layer."""

from __future__ import annotations

import logging
from typing import Any

from ridecache.cache.reconciler import FieldPatchReconciler, PatchInput
from ridecache.cache.registry import RideSubscription, SubscriptionRegistry
from ridecache.cache.store import RideCacheStore
from ridecache.config import RideCacheConfig
from ridecache.models.ride import RideRecord
from ridecache.storage.base import KeyValueBackend
from ridecache.storage.file import FileBackend
from ridecache.storage.memory import MemoryBackend

_logger = logging.getLogger(__name__)


def _default_backend(config: RideCacheConfig) -> KeyValueBackend:
    if config.storage_dir:
        return FileBackend(config.storage_dir)
    return MemoryBackend()


class RideLocalDatasource:
    """Current-ride cache with live per-user updates.

    Usage::

        async with RideLocalDatasource(RideCacheConfig(storage_dir="rides")) as rides:
            await rides.save_ride(ride)
            updates = await rides.watch_current_ride(ride.user_id)
            async for current in updates:
                ...
    """

    def __init__(
        self,
        config: RideCacheConfig | None = None,
        *,
        backend: KeyValueBackend | None = None,
        registry: SubscriptionRegistry | None = None,
    ) -> None:
        self._config = config or RideCacheConfig()
        self._backend = backend if backend is not None else _default_backend(self._config)
        self._registry = registry if registry is not None else SubscriptionRegistry()
        self._store = RideCacheStore(self._backend, self._registry, key_prefix=self._config.key_prefix)
        self._reconciler = FieldPatchReconciler(
            self._store,
            strict=self._config.strict_patches,
            serialize=self._config.serialize_patches,
        )

    @property
    def config(self) -> RideCacheConfig:
        return self._config

    @property
    def store(self) -> RideCacheStore:
        return self._store

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RideLocalDatasource:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        """Complete every open subscription."""
        self._registry.dispose_all()

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    async def save_ride(self, ride: RideRecord) -> None:
        """Persist *ride* as the current ride of its user and notify watchers."""
        await self._store.put(ride.user_id, ride)

    async def get_ride(self, user_id: str) -> RideRecord | None:
        """Return the cached ride of *user_id*, or ``None``."""
        return await self._store.get(user_id)

    async def clear_ride(self, user_id: str) -> None:
        """Drop the cached ride of *user_id*; watchers receive ``None``."""
        await self._store.clear(user_id)

    async def update_ride_fields(self, user_id: str, fields: PatchInput) -> RideRecord | None:
        """Patch selected fields of the current ride.

        *fields* is either a ``{name: value}`` map (wire or typed values) or
        an iterable of typed field patches. Returns the stored record, or
        ``None`` if the user has no current ride.
        """
        return await self._reconciler.patch(user_id, fields)

    async def cached_user_ids(self) -> list[str]:
        return await self._store.list_users()

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    async def watch_current_ride(self, user_id: str) -> RideSubscription:
        """Subscribe to the current ride of *user_id*.

        The cached value (possibly ``None``) is delivered first, then every
        subsequent save, patch or clear.
        """
        key_user = user_id.strip()
        subscription = await self._registry.subscribe(key_user, lambda: self._store.get(key_user))
        _logger.debug("Watching current ride for user %s", key_user)
        return subscription

    def dispose_user_stream(self, user_id: str) -> None:
        """Complete all subscriptions of *user_id* and release the channel."""
        self._registry.dispose(user_id.strip())
