"""File-per-key backend with atomic replace."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import quote, unquote

_logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class FileBackend:
    """Stores each key as ``<directory>/<quoted key>.json``.

    Writes go to a temporary file in the same directory which is fsynced
    and then moved over the target with :func:`os.replace`, so a crash or
    a failed write never leaves a truncated document behind. Blocking file
    I/O runs in the loop's default executor.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{quote(key, safe='')}{_SUFFIX}"

    def _read_sync(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write_sync(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        target = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-", suffix=_SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
        _logger.debug("Wrote %s (%d bytes)", target.name, len(value))

    def _delete_sync(self, key: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path(key).unlink()

    def _keys_sync(self, prefix: str) -> list[str]:
        if not self._directory.is_dir():
            return []
        found: list[str] = []
        for entry in self._directory.iterdir():
            name = entry.name
            if name.startswith(".tmp-") or not name.endswith(_SUFFIX):
                continue
            key = unquote(name[: -len(_SUFFIX)])
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)

    async def read(self, key: str) -> str | None:
        return await asyncio.get_running_loop().run_in_executor(None, self._read_sync, key)

    async def write(self, key: str, value: str) -> None:
        await asyncio.get_running_loop().run_in_executor(None, self._write_sync, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.get_running_loop().run_in_executor(None, self._delete_sync, key)

    async def keys(self, prefix: str = "") -> list[str]:
        return await asyncio.get_running_loop().run_in_executor(None, self._keys_sync, prefix)
