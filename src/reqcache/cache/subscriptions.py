"""Process-wide listener registry with batched change notification.

Listeners are registered once per reader, not per key, so registration is
O(1); each listener decides for itself whether a changed key matters.

Changed keys are queued and delivered together on the next event loop
tick.  Inside :meth:`SubscriptionRegistry.batch` delivery is held back
until the outermost batch exits, which is how ``touch`` publishes all of
its refetched keys as one update.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


class Subscription:
    """Opaque handle returned by :meth:`SubscriptionRegistry.subscribe`."""

    __slots__ = ("callback",)

    def __init__(self, callback: Listener) -> None:
        self.callback = callback

    def __repr__(self) -> str:
        return f"Subscription({self.callback!r})"


class SubscriptionRegistry:
    """Holds active listeners and fans out key-change notifications."""

    def __init__(self) -> None:
        self._subscriptions: dict[Subscription, None] = {}
        self._changed: dict[str, None] = {}
        self._batch_depth = 0
        self._flush_handle: Optional[asyncio.Handle] = None

    def subscribe(self, callback: Listener) -> Subscription:
        subscription = Subscription(callback)
        self._subscriptions[subscription] = None
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.pop(subscription, None)

    def __len__(self) -> int:
        return len(self._subscriptions)

    def notify(self, key: str) -> None:
        """Queue a change of *key* for delivery."""
        self._changed[key] = None
        if self._batch_depth == 0:
            self._schedule_flush()

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Defer delivery of every change queued inside the block."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._changed:
                self._schedule_flush()

    def flush(self) -> None:
        """Deliver queued changes now, in the order they were first queued."""
        self._flush_handle = None
        if not self._changed:
            return
        keys = list(self._changed)
        self._changed = {}
        for subscription in list(self._subscriptions):
            for key in keys:
                try:
                    subscription.callback(key)
                except Exception:
                    logger.exception("Listener %r failed on change of %s", subscription, key)

    def cancel(self) -> None:
        """Discard queued changes and any scheduled delivery."""
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        self._changed = {}

    def _schedule_flush(self) -> None:
        if self._flush_handle is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        self._flush_handle = loop.call_soon(self.flush)
