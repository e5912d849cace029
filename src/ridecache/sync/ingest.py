"""Replays sync messages into a local datasource, in arrival order."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from ridecache._redact import redact_for_log
from ridecache.datasource import RideLocalDatasource
from ridecache.exceptions import RideCacheError, SyncPayloadError
from ridecache.sync.messages import SyncEventType, SyncMessage

_logger = logging.getLogger(__name__)

_STOP: Any = object()


class SyncIngestor:
    """Applies :class:`SyncMessage` values to a :class:`RideLocalDatasource`.

    :meth:`handle` applies one message and propagates storage and
    reconciliation errors. :meth:`submit` queues a message for the
    background worker started by :meth:`start`, which applies messages one
    at a time so per-user order matches arrival order; failures there are
    logged and the message is dropped.
    """

    def __init__(self, datasource: RideLocalDatasource) -> None:
        self._datasource = datasource
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def handle(self, message: SyncMessage) -> None:
        if message.event == SyncEventType.RIDE_SAVED:
            if message.ride is None:
                raise SyncPayloadError(f"rideSaved for user {message.user_id} carries no ride")
            await self._datasource.save_ride(message.ride)
        elif message.event == SyncEventType.RIDE_UPDATED:
            if message.changes is None:
                raise SyncPayloadError(f"rideUpdated for user {message.user_id} carries no fields")
            await self._datasource.update_ride_fields(message.user_id, message.changes)
        elif message.event == SyncEventType.RIDE_CLEARED:
            await self._datasource.clear_ride(message.user_id)
        _logger.debug("Applied sync %s for user %s", message.event, message.user_id)

    def submit(self, message: SyncMessage) -> None:
        """Queue *message*; must be called from the event loop thread."""
        self._queue.put_nowait(message)

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())
            self._worker.add_done_callback(self._worker_done)

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def stop(self) -> None:
        """Apply everything already queued, then stop the worker."""
        worker = self._worker
        self._worker = None
        if worker is None:
            return
        self._queue.put_nowait(_STOP)
        with contextlib.suppress(asyncio.CancelledError):
            await worker

    def _worker_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Sync worker stopped with %d message(s) pending", self._queue.qsize(), exc_info=exc)

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            if message is _STOP:
                return
            try:
                await self.handle(message)
            except (RideCacheError, ValueError):
                _logger.warning(
                    "Dropping sync %s for user %s: %s",
                    message.event,
                    message.user_id,
                    redact_for_log(message.model_dump(mode="json", by_alias=True)),
                    exc_info=True,
                )
            except Exception:
                _logger.exception("Unexpected failure applying sync %s for user %s", message.event, message.user_id)
