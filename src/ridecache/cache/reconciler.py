"""Field-patch reconciliation for the current ride.

Sparse updates arrive either as typed :data:`RideFieldPatch` variants from
in-process callers or as loose ``{field: value}`` maps decoded from the
remote sync feed. Both are normalized here, merged onto the cached record
and written back through :meth:`RideCacheStore.put`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ridecache.cache.store import RideCacheStore
from ridecache.exceptions import ReconciliationError, RideNotFoundError
from ridecache.models.patch import FieldPatchBase, RideFieldPatch, apply_field_patches, parse_field_patches
from ridecache.models.ride import RideRecord

_logger = logging.getLogger(__name__)

PatchInput = Mapping[str, Any] | Iterable[RideFieldPatch]


@dataclass(slots=True)
class _UserLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    # Holders plus waiters; the entry is dropped when it reaches zero.
    users: int = 0


def coerce_patches(fields: PatchInput) -> list[RideFieldPatch]:
    """Return typed patches for either accepted input representation."""
    if isinstance(fields, Mapping):
        return parse_field_patches(fields)
    patches: list[RideFieldPatch] = []
    for item in fields:
        if not isinstance(item, FieldPatchBase):
            raise ReconciliationError(f"Not a ride field patch: {type(item).__name__}")
        patches.append(item)  # type: ignore[arg-type]
    return patches


class FieldPatchReconciler:
    """Read-modify-write of the current ride through the cache store.

    Parameters
    ----------
    store : RideCacheStore
        Store used for the read and the final write.
    strict : bool
        Raise :class:`RideNotFoundError` when the user has no current ride.
        By default such patches are logged and ignored.
    serialize : bool
        Hold a per-user lock around the read-modify-write so concurrent
        patches for the same user do not overwrite each other. Full-record
        writes through the store are not serialized.
    """

    def __init__(self, store: RideCacheStore, *, strict: bool = False, serialize: bool = True) -> None:
        self._store = store
        self._strict = strict
        self._serialize = serialize
        self._locks: dict[str, _UserLock] = {}

    @contextlib.asynccontextmanager
    async def _lock(self, user_id: str) -> AsyncIterator[None]:
        if not self._serialize:
            yield
            return
        entry = self._locks.get(user_id)
        if entry is None:
            entry = _UserLock()
            self._locks[user_id] = entry
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(user_id, None)

    @property
    def locked_users(self) -> list[str]:
        """User IDs with a patch in flight or waiting."""
        return sorted(self._locks)

    async def patch(self, user_id: str, fields: PatchInput) -> RideRecord | None:
        """Apply *fields* to the current ride of *user_id*.

        Returns the stored record, or ``None`` when there was no current
        ride to patch (non-strict mode).
        """
        async with self._lock(user_id.strip()):
            current = await self._store.get(user_id)
            if current is None:
                if self._strict:
                    raise RideNotFoundError(f"No current ride for user {user_id}", user_id=user_id)
                _logger.info("Ignoring ride patch for user %s: no current ride", user_id)
                return None

            patches = coerce_patches(fields)
            if not patches:
                _logger.debug("Ride patch for user %s carries no applicable fields", user_id)
                return current

            updated = apply_field_patches(current, patches)
            await self._store.put(user_id, updated)
            _logger.debug(
                "Patched ride %s for user %s: %s",
                updated.id,
                user_id,
                ", ".join(patch.field for patch in patches),
            )
            return updated
