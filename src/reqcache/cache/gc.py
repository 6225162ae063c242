"""Deferred, cancellable eviction of unread entries.

An entry whose last reader goes away is not dropped immediately: a
deletion timer is armed for the grace period so that a reader which
unmounts and remounts quickly finds its data still cached.  When the timer
fires the entry is evicted only if it still has no readers, and the
eviction cascades to dependents that have no readers of their own.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from reqcache.cache.store import EntryStore

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = 180.0


class GarbageCollector:
    """Arms and fires deletion timers on an :class:`~reqcache.cache.store.EntryStore`.

    Args:
        store: The store to evict from.
        grace_period: Seconds between an entry losing its last reader and
            its eviction.
    """

    def __init__(self, store: EntryStore, grace_period: float = DEFAULT_GRACE_PERIOD) -> None:
        self._store = store
        self.grace_period = grace_period

    def schedule(self, key: str, delay: Optional[float] = None) -> bool:
        """Arm (or re-arm) the deletion timer of *key*.

        Returns:
            ``False`` when the key is absent or no event loop is running to
            own the timer.
        """
        entry = self._store.read(key)
        if entry is None:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; deletion of %s not scheduled", key)
            return False

        entry.cancel_deletion()
        if delay is None:
            delay = self.grace_period
        entry.deletion_timer = loop.call_later(delay, self.collect, key)
        logger.debug("Deletion of %s armed in %.1fs", key, delay)
        return True

    def cancel(self, key: str) -> None:
        entry = self._store.read(key)
        if entry is not None and entry.deletion_timer is not None:
            entry.cancel_deletion()
            logger.debug("Deletion of %s cancelled", key)

    def collect(self, key: str) -> list[str]:
        """Evict *key* if it is still unread, cascading to unread dependents.

        Returns:
            Every key that was evicted.
        """
        entry = self._store.read(key)
        if entry is None:
            return []
        entry.deletion_timer = None
        if entry.subscriber_count > 0:
            return []

        self._store.delete(key)
        evicted = [key]
        for dependent_key in entry.dependent_keys:
            dependent = self._store.read(dependent_key)
            if dependent is not None and dependent.subscriber_count == 0:
                self._store.delete(dependent_key)
                evicted.append(dependent_key)
        logger.debug("Evicted %s", ", ".join(evicted))
        return evicted
