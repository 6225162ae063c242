"""The request cache engine.

:class:`CacheEngine` keeps one entry per resource key, coalesces concurrent
reads onto a single in-flight fetch, counts readers per key through
:class:`Reader` interest sets, evicts unread entries after a grace period,
and refreshes entries in atomic batches with ``touch``.

:class:`SnapshotStore` persists engine snapshots to disk between runs.
"""

from reqcache.cache.dependencies import DependencyResolver, IdExtractor
from reqcache.cache.engine import CacheEngine
from reqcache.cache.entry import CacheEntry, EntryState
from reqcache.cache.reader import Pending, Reader, SuspendResult
from reqcache.cache.snapshot import SnapshotStore

__all__ = [
    "CacheEngine",
    "CacheEntry",
    "DependencyResolver",
    "EntryState",
    "IdExtractor",
    "Pending",
    "Reader",
    "SnapshotStore",
    "SuspendResult",
]
