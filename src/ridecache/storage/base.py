"""Structural backend interface."""

from __future__ import annotations

from typing import Protocol


class KeyValueBackend(Protocol):
    """Structural storage interface used by the cache store.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementations concrete. Implementations
    raise ``OSError`` (or subclasses) on I/O failure and must make
    :meth:`write` atomic: readers see either the old or the new value.
    """

    async def read(self, key: str) -> str | None:
        ...

    async def write(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def keys(self, prefix: str = "") -> list[str]:
        ...
