"""Per-user broadcast channels for current-ride change notifications.

The registry is plain single-event-loop state: every method must be called
from the loop that owns the subscriptions. It is an explicit object so
each datasource (and each test) gets its own isolated set of channels.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ridecache.models.ride import RideRecord

_logger = logging.getLogger(__name__)

# Queued after the last value to signal completion.
_CLOSED: Any = object()
# Marks "replay value already delivered".
_NO_REPLAY: Any = object()


@dataclass(slots=True)
class _Channel:
    subscribers: list[asyncio.Queue[Any]] = field(default_factory=list)


class RideSubscription:
    """A live, cancellable feed of ``RideRecord | None`` values for one user.

    Usage::

        async with await registry.subscribe(user_id, loader) as updates:
            async for ride in updates:
                ...

    The first value is the record persisted at subscribe time; later values
    follow in the order writes completed. Iteration ends cleanly when the
    user's channel is disposed or :meth:`close` is called.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        user_id: str,
        queue: asyncio.Queue[Any],
        replay: RideRecord | None,
    ) -> None:
        self._registry = registry
        self._user_id = user_id
        self._queue = queue
        self._replay: Any = replay
        self._closed = False

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> RideSubscription:
        return self

    async def __anext__(self) -> RideRecord | None:
        if self._replay is not _NO_REPLAY:
            value = self._replay
            self._replay = _NO_REPLAY
            return value
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Detach this subscriber only; other subscribers keep receiving."""
        if self._closed:
            return
        self._closed = True
        self._replay = _NO_REPLAY
        self._registry._detach(self._user_id, self._queue)
        self._queue.put_nowait(_CLOSED)

    async def __aenter__(self) -> RideSubscription:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()


class SubscriptionRegistry:
    """Maps user IDs to broadcast channels, created lazily on first subscribe.

    Every subscriber has its own unbounded queue, so a slow reader never
    drops or delays values for the others.
    """

    def __init__(self) -> None:
        self._channels: dict[str, _Channel] = {}

    def _channel(self, user_id: str) -> _Channel:
        channel = self._channels.get(user_id)
        if channel is None:
            channel = _Channel()
            self._channels[user_id] = channel
            _logger.debug("Created notification channel for user %s", user_id)
        return channel

    async def subscribe(
        self,
        user_id: str,
        loader: Callable[[], Awaitable[RideRecord | None]],
    ) -> RideSubscription:
        """Attach a subscriber, then replay the value returned by *loader*.

        The subscriber is attached before the replay fetch, so values
        published while the fetch is pending are queued behind the replay
        instead of being lost.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._channel(user_id).subscribers.append(queue)
        try:
            current = await loader()
        except BaseException:
            self._detach(user_id, queue)
            raise
        return RideSubscription(self, user_id, queue, current)

    def notify(self, user_id: str, value: RideRecord | None) -> None:
        """Deliver *value* to every live subscriber of *user_id*.

        Users without a channel (never subscribed, or disposed) are skipped;
        nothing is buffered for future subscribers.
        """
        channel = self._channels.get(user_id)
        if channel is None:
            return
        for queue in list(channel.subscribers):
            queue.put_nowait(value)
        _logger.debug("Notified %d subscriber(s) for user %s", len(channel.subscribers), user_id)

    def dispose(self, user_id: str) -> None:
        """Complete every subscription for *user_id* and release its channel.

        A later :meth:`subscribe` creates a fresh channel.
        """
        channel = self._channels.pop(user_id, None)
        if channel is None:
            return
        for queue in channel.subscribers:
            queue.put_nowait(_CLOSED)
        _logger.debug("Disposed channel for user %s (%d subscriber(s))", user_id, len(channel.subscribers))

    def dispose_all(self) -> None:
        for user_id in list(self._channels):
            self.dispose(user_id)

    def subscriber_count(self, user_id: str) -> int:
        channel = self._channels.get(user_id)
        return len(channel.subscribers) if channel is not None else 0

    def active_users(self) -> list[str]:
        return sorted(self._channels)

    def _detach(self, user_id: str, queue: asyncio.Queue[Any]) -> None:
        channel = self._channels.get(user_id)
        if channel is None:
            return
        channel.subscribers = [q for q in channel.subscribers if q is not queue]
        if not channel.subscribers:
            del self._channels[user_id]
