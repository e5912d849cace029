"""Custom exception hierarchy for ridecache."""

from __future__ import annotations


class RideCacheError(Exception):
    """Base exception for all ridecache errors."""


class RideCacheConfigError(RideCacheError):
    """Invalid or missing configuration."""


class StorageError(RideCacheError):
    """Serialization, deserialization or I/O failure in the cache store.

    The failed operation leaves no partial state behind: a failed write
    keeps the previously persisted value (or absence) intact.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str = "",
        operation: str = "",
    ) -> None:
        self.key = key
        self.operation = operation
        super().__init__(message)


class ReconciliationError(RideCacheError):
    """A patch field carried a value whose shape is not recognized.

    Raised before anything is written, so the cached ride is unchanged.
    """

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class RideNotFoundError(RideCacheError):
    """Patch requested for a user without a current ride (strict mode only)."""

    def __init__(self, message: str, *, user_id: str = "") -> None:
        self.user_id = user_id
        super().__init__(message)


class GeocodingError(RideCacheError):
    """Reverse-geocoding lookup failed (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message)


class SyncPayloadError(RideCacheError):
    """A message from the remote sync feed could not be decoded."""
