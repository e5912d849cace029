"""Key-value storage backends for the ride cache.

Backends store opaque strings; serialization belongs to
:class:`ridecache.cache.store.RideCacheStore`.
"""

from ridecache.storage.base import KeyValueBackend
from ridecache.storage.file import FileBackend
from ridecache.storage.memory import MemoryBackend

__all__ = ["FileBackend", "KeyValueBackend", "MemoryBackend"]
