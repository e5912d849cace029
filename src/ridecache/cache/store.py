"""Durable one-record-per-user ride store.

This is the only component allowed to write ride documents to storage.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ridecache._redact import redact_for_log
from ridecache.cache.registry import SubscriptionRegistry
from ridecache.exceptions import StorageError
from ridecache.models.ride import RideRecord
from ridecache.storage.base import KeyValueBackend

_logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "ride_cache_"


def serialize_ride(record: RideRecord) -> str:
    """Encode *record* as the camelCase JSON document stored per user."""
    return record.model_dump_json(by_alias=True)


def deserialize_ride(document: str) -> RideRecord:
    """Decode a stored JSON document back into a :class:`RideRecord`."""
    return RideRecord.model_validate_json(document)


class RideCacheStore:
    """Persists the current ride per user and notifies subscribers.

    Notification happens only after the backend write (or delete) has
    completed, so subscribers never observe a value that failed to persist.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        registry: SubscriptionRegistry,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._key_prefix = key_prefix

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    def cache_key(self, user_id: str) -> str:
        normalized = user_id.strip()
        if not normalized:
            raise ValueError("user_id must be non-empty")
        return f"{self._key_prefix}{normalized}"

    async def put(self, user_id: str, record: RideRecord) -> None:
        """Replace the current ride of *user_id* with *record*."""
        key = self.cache_key(user_id)
        if record.user_id != user_id.strip():
            raise ValueError(f"record belongs to user {record.user_id!r}, not {user_id!r}")
        try:
            document = serialize_ride(record)
        except (ValueError, TypeError) as exc:
            raise StorageError(f"Failed to serialize ride {record.id}: {exc}", key=key, operation="put") from exc
        try:
            await self._backend.write(key, document)
        except OSError as exc:
            raise StorageError(f"Failed to write {key}: {exc}", key=key, operation="put") from exc
        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug(
                "Stored ride %s for user %s: %s",
                record.id,
                record.user_id,
                redact_for_log(record.model_dump(mode="json", by_alias=True)),
            )
        self._registry.notify(record.user_id, record)

    async def get(self, user_id: str) -> RideRecord | None:
        """Return the last persisted ride of *user_id*, or ``None``."""
        key = self.cache_key(user_id)
        try:
            document = await self._backend.read(key)
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Failed to read {key}: {exc}", key=key, operation="get") from exc
        if document is None:
            return None
        try:
            return deserialize_ride(document)
        except ValidationError as exc:
            raise StorageError(f"Corrupt ride document at {key}: {exc}", key=key, operation="get") from exc

    async def clear(self, user_id: str) -> None:
        """Remove the ride of *user_id* and notify subscribers with ``None``."""
        key = self.cache_key(user_id)
        try:
            await self._backend.delete(key)
        except OSError as exc:
            raise StorageError(f"Failed to delete {key}: {exc}", key=key, operation="clear") from exc
        _logger.debug("Cleared ride cache for user %s", user_id)
        self._registry.notify(user_id.strip(), None)

    async def list_users(self) -> list[str]:
        """User IDs that currently have a cached ride."""
        try:
            keys = await self._backend.keys(self._key_prefix)
        except OSError as exc:
            raise StorageError(f"Failed to list keys: {exc}", operation="list") from exc
        return [key[len(self._key_prefix) :] for key in keys]
