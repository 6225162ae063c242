"""Disk persistence for engine snapshots.

:class:`SnapshotStore` keeps the output of
:meth:`~reqcache.cache.engine.CacheEngine.save` in a :mod:`diskcache`
directory so a later process can :meth:`~reqcache.cache.engine.CacheEngine.restore`
it and answer reads without a network round trip.  Each profile gets its
own sub-directory, and every persisted key expires after
:attr:`~reqcache.models.CacheConfig.snapshot_ttl_seconds`.

Only plain values reach this layer: the engine never exports pending or
error entries.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional

import diskcache

_MISSING = object()


class SnapshotStore:
    """Disk-backed key/value snapshot of cached resources.

    Args:
        cache_dir: Root cache directory; ``snapshots/<namespace>`` is
            created inside it.
        namespace: Usually the profile name.
        ttl_seconds: Expiry applied to every persisted key.

    Example::

        store = SnapshotStore(get_cache_dir(), "github", ttl_seconds=300)
        engine.restore(store.load())
        ...
        store.dump(engine.save())
        store.close()
    """

    def __init__(self, cache_dir: str | Path, namespace: str, ttl_seconds: Optional[int] = None) -> None:
        self._directory = Path(cache_dir) / "snapshots" / namespace
        self._ttl = ttl_seconds
        self._cache = diskcache.Cache(str(self._directory))

    @property
    def directory(self) -> Path:
        return self._directory

    def load(self) -> dict[str, Any]:
        """Return every unexpired persisted key and its value."""
        snapshot: dict[str, Any] = {}
        for key in list(self._cache.iterkeys()):
            value = self._cache.get(key, default=_MISSING)
            if value is not _MISSING:
                snapshot[key] = value
        return snapshot

    def dump(self, snapshot: Mapping[str, Any]) -> int:
        """Persist *snapshot*, refreshing the expiry of every key it contains.

        Returns:
            The number of keys written.
        """
        with self._cache.transact():
            for key, value in snapshot.items():
                self._cache.set(key, value, expire=self._ttl)
        return len(snapshot)

    def remove(self, keys: Iterable[str]) -> None:
        with self._cache.transact():
            for key in keys:
                self._cache.delete(key)

    def discard(self, fragments: Iterable[str]) -> list[str]:
        """Remove persisted keys containing any of *fragments*."""
        fragments = list(fragments)
        removed = [
            key for key in list(self._cache.iterkeys())
            if any(fragment in key for fragment in fragments)
        ]
        self.remove(removed)
        return removed

    def clear(self) -> int:
        return self._cache.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._cache),
            "directory": str(self._directory),
            "ttl_seconds": self._ttl,
        }

    def close(self) -> None:
        self._cache.close()

    def __enter__(self) -> SnapshotStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

