"""The entry store: resource key to :class:`~reqcache.cache.entry.CacheEntry`.

The store is the single source of truth for cached state.  It knows
nothing about listeners or dependencies; the engine layers notification
and dependency bookkeeping on top of :meth:`EntryStore.write`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from typing import Any, Optional

from reqcache.cache.entry import CacheEntry


def is_future(outcome: Any) -> bool:
    return asyncio.isfuture(outcome)


class EntryStore:
    """Mapping of resource keys to cache entries."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def read(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def ensure(self, key: str) -> CacheEntry:
        """Return the entry for *key*, creating an empty one on first use."""
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key)
        return entry

    def write(self, key: str, outcome: Any) -> CacheEntry:
        """Store *outcome* for *key* and return the entry.

        An exception instance is stored as an error, an asyncio future marks
        the entry pending, anything else is a value.  The subscriber count
        survives the write; a live deletion timer does not, since a write is
        proof the key is still in use.
        """
        entry = self.ensure(key)
        entry.cancel_deletion()
        if is_future(outcome):
            entry.set_pending(outcome)
        elif isinstance(outcome, BaseException):
            entry.set_error(outcome)
        else:
            entry.set_value(outcome)
        return entry

    def delete(self, key: str) -> Optional[CacheEntry]:
        """Remove *key*, cancelling its timer.  Returns the removed entry, if any."""
        entry = self._entries.pop(key, None)
        if entry is not None:
            entry.cancel_deletion()
        return entry

    def clear(self) -> None:
        """Drop every entry and cancel every deletion timer."""
        for entry in self._entries.values():
            entry.cancel_deletion()
        self._entries = {}

    def keys(self) -> list[str]:
        """Snapshot of the current keys, safe to iterate while mutating the store."""
        return list(self._entries)

    def items(self) -> list[tuple[str, CacheEntry]]:
        return list(self._entries.items())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
