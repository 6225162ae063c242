"""The cache engine: coalesced fetches, interest counting, touch, and eviction.

:class:`CacheEngine` owns the entry store, the listener registry, the
dependency resolver and the garbage collector, and is the only writer of
any of them.  Everything runs on one asyncio event loop, so there is no
locking; ordering rules are enforced at commit time instead:

* at most one fetch is in flight per key, and every reader of that key
  waits on the same future;
* a fetch result is written only if the entry still points at that
  fetch (a touch or explicit write that landed meanwhile wins), or if the
  entry vanished, in which case the result re-seeds it;
* a deletion timer re-checks the subscriber count when it fires.

See Also:
    :class:`~reqcache.cache.reader.Reader` for the suspending read protocol.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional, TypeVar

from reqcache.cache.dependencies import DependencyResolver, Extractor, IdExtractor
from reqcache.cache.entry import CacheEntry, EntryState
from reqcache.cache.gc import DEFAULT_GRACE_PERIOD, GarbageCollector
from reqcache.cache.reader import Pending, Reader
from reqcache.cache.store import EntryStore, is_future
from reqcache.cache.subscriptions import SubscriptionRegistry
from reqcache.exceptions import CacheMisuseError, NotFoundError
from reqcache.models import CacheConfig, CacheStats, EntryInfo
from reqcache.transport.base import Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")

Matcher = Callable[[str, Any], bool]
Modifier = Callable[[Any, Callable[[str], Any]], Any]


def _as_outcome(error: Optional[BaseException], value: Any = None) -> Any:
    """Map a fetch result onto what gets cached: 404 is ``None``, other errors stay errors."""
    if error is None:
        return value
    if isinstance(error, NotFoundError):
        return None
    return error


class CacheEngine:
    """Client-side request cache over a :class:`~reqcache.transport.base.Transport`.

    Args:
        transport: Performs the actual requests.
        extractor: Derives sub-resource entries from fetched values.
        modifier: ``modifier(value, load)`` applied to every value returned
            by a read; ``load(key)`` reads another key under the same
            interest set.
        grace_period: Seconds an entry survives after losing its last reader.
        speculative_ttl: Seconds an entry nobody has read survives
            (derived, restored, or fetched but never committed).  ``None``
            keeps such entries until something reads and releases them.

    Example::

        async with HttpTransport(profile) as transport:
            engine = CacheEngine(transport, extractor=IdExtractor())
            reader = engine.reader()
            users = await reader.render(lambda r: r.get("/users"))
            await engine.touch("users")
    """

    def __init__(
        self,
        transport: Transport,
        *,
        extractor: Optional[Extractor] = None,
        modifier: Optional[Modifier] = None,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        speculative_ttl: Optional[float] = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self.transport = transport
        self.store = EntryStore()
        self.registry = SubscriptionRegistry()
        self.resolver = DependencyResolver(self.store, extractor)
        self.collector = GarbageCollector(self.store, grace_period)
        self.speculative_ttl = speculative_ttl
        self._modifier = modifier

    @classmethod
    def from_config(cls, transport: Transport, config: CacheConfig, **kwargs: Any) -> CacheEngine:
        """Build an engine from the ``cache`` section of the global config."""
        extractor = IdExtractor(config.id_field) if config.derive_by_id else None
        kwargs.setdefault("extractor", extractor)
        return cls(
            transport,
            grace_period=config.grace_period_seconds,
            speculative_ttl=config.speculative_ttl_seconds,
            **kwargs,
        )

    def reader(self, on_change: Optional[Callable[[], None]] = None) -> Reader:
        return Reader(self, on_change)

    # ------------------------------------------------------------------ #
    # Reads and writes
    # ------------------------------------------------------------------ #

    def read(self, key: str, interest: Optional[set[str]] = None) -> Any:
        """Suspending read of *key*.

        Records *key* in *interest*, then returns the cached value, re-raises
        the cached error, or raises :class:`~reqcache.cache.reader.Pending`
        with the (possibly newly started) shared fetch.

        Raises:
            Pending: No value yet.
            CacheMisuseError: A fetch is needed but no event loop is running.
        """
        if interest is not None:
            interest.add(key)

        entry = self.store.read(key)
        if entry is not None and entry.is_present:
            return self._modify(entry.result(), interest)
        if entry is not None and entry.is_pending:
            assert entry.future is not None
            raise Pending(key, entry.future)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise CacheMisuseError(
                f"Cannot fetch {key!r}: suspending reads need a running event loop"
            ) from None
        logger.debug("Fetching %s", key)
        task = loop.create_task(self.transport.request("GET", key))
        self.write(key, task)
        raise Pending(key, task)

    def write(self, key: str, outcome: Any) -> CacheEntry:
        """Store *outcome* for *key*.

        A future (or coroutine, which is scheduled as a task) marks the entry
        pending silently; its result is written back when it settles.  A
        value or exception is stored, dependents are recomputed for values,
        and listeners are notified.
        """
        if asyncio.iscoroutine(outcome):
            outcome = asyncio.ensure_future(outcome)

        entry = self.store.write(key, outcome)
        if is_future(outcome):
            outcome.add_done_callback(functools.partial(self._on_settled, key))
            return entry

        if entry.state is EntryState.VALUE:
            for seeded in self.resolver.resolve(key, outcome):
                self._expire_speculative(seeded)
        self._expire_speculative(key)
        self.registry.notify(key)
        return entry

    async def request(self, method: str, key: str, body: Any = None) -> Any:
        """Direct-mode request: calls the transport, bypassing the cache entirely."""
        return await self.transport.request(method, key, body)

    def _on_settled(self, key: str, future: asyncio.Future[Any]) -> None:
        entry = self.store.read(key)
        if entry is not None and entry.future is not future:
            logger.debug("Dropping superseded result for %s", key)
            return
        if future.cancelled():
            if entry is not None:
                entry.state = EntryState.EMPTY
                entry.future = None
            return

        error = future.exception()
        outcome = _as_outcome(error, None if error else future.result())
        if error is not None and outcome is not None:
            logger.debug("Fetch of %s failed: %s", key, error)
        self.write(key, outcome)

    def _modify(self, value: Any, interest: Optional[set[str]]) -> Any:
        if self._modifier is None:
            return value
        return self._modifier(value, lambda key: self.read(key, interest))

    # ------------------------------------------------------------------ #
    # Interest counting and eviction
    # ------------------------------------------------------------------ #

    def retain(self, key: str) -> None:
        """Count one more reader of *key*, cancelling any pending eviction."""
        entry = self.store.ensure(key)
        entry.subscriber_count += 1
        self.collector.cancel(key)

    def release(self, key: str) -> None:
        """Count one reader less; the last release arms the grace-period timer."""
        entry = self.store.read(key)
        if entry is None or entry.subscriber_count == 0:
            return
        entry.subscriber_count -= 1
        if entry.subscriber_count == 0:
            self.collector.schedule(key)

    def _expire_speculative(self, key: str) -> None:
        entry = self.store.read(key)
        if (
            self.speculative_ttl is not None
            and entry is not None
            and entry.subscriber_count == 0
            and entry.deletion_timer is None
        ):
            self.collector.schedule(key, self.speculative_ttl)

    # ------------------------------------------------------------------ #
    # Invalidation
    # ------------------------------------------------------------------ #

    async def touch(self, *fragments: str) -> list[str]:
        """Refetch every key containing any of *fragments*.

        ``touch("users")`` matches ``/users``, ``/users/5`` and
        ``/users?active=true``.
        """
        return await self.touch_with_matcher(
            lambda key, _value: any(fragment in key for fragment in fragments)
        )

    async def touch_with_matcher(self, matcher: Matcher) -> list[str]:
        """Refetch every entry for which ``matcher(key, value_or_error)`` is true.

        Matching entries without readers are evicted instead of refetched.
        The refetches run in parallel, ignoring any fetch already in flight,
        and no result is written until all of them have settled; the writes
        are then published to listeners as a single batch.  A failed refetch
        stores an error for its own key only.

        Returns:
            The keys that were refetched.
        """
        refetch: list[str] = []
        for key in self.store.keys():
            entry = self.store.read(key)
            if entry is None or not matcher(key, entry.last_known()):
                continue
            if entry.subscriber_count == 0:
                self.store.delete(key)
            else:
                refetch.append(key)

        if not refetch:
            return []

        logger.debug("Touch refetching %d keys", len(refetch))
        outcomes = await asyncio.gather(*(self._fetch_outcome(key) for key in refetch))
        with self.registry.batch():
            for key, outcome in zip(refetch, outcomes):
                self.write(key, outcome)
        return refetch

    async def _fetch_outcome(self, key: str) -> Any:
        try:
            value = await self.transport.request("GET", key)
        except Exception as exc:
            return _as_outcome(exc)
        return value

    # ------------------------------------------------------------------ #
    # Preload, snapshots, reset
    # ------------------------------------------------------------------ #

    async def preload(self, fn: Callable[[Reader], T]) -> T:
        """Run *fn* until it completes without suspending, without retaining anything.

        Reads inside *fn* start fetches on a miss like any other read, but
        nothing is retained and no listener is registered.  A non-pending
        exception from *fn* aborts the loop.
        """
        detached = Reader(self, track_interest=False)
        try:
            return await detached.render(fn)
        finally:
            detached.close()

    def save(self) -> dict[str, Any]:
        """Export every materialised, non-error value."""
        return {
            key: entry.value for key, entry in self.store.items() if entry.state is EntryState.VALUE
        }

    def restore(self, snapshot: Mapping[str, Any]) -> list[str]:
        """Seed entries from *snapshot* for keys not already cached.

        Restored entries have no readers and no dependents.

        Returns:
            The keys that were restored.
        """
        restored: list[str] = []
        for key, value in snapshot.items():
            if key in self.store:
                continue
            self.store.write(key, value)
            self._expire_speculative(key)
            restored.append(key)
        return restored

    def reset(self) -> None:
        """Drop every entry and cancel every deletion timer.

        Fetches in flight are not cancelled; their results re-seed the store.
        """
        self.store.clear()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def entries(self) -> list[EntryInfo]:
        return [
            EntryInfo(
                key=key,
                state=entry.state.value,
                subscribers=entry.subscriber_count,
                dependents=list(entry.dependent_keys),
                expiring=entry.is_expiring,
            )
            for key, entry in self.store.items()
        ]

    def stats(self) -> CacheStats:
        stats = CacheStats(entries=len(self.store), listeners=len(self.registry))
        for _key, entry in self.store.items():
            if entry.state is EntryState.PENDING:
                stats.pending += 1
            elif entry.state is EntryState.VALUE:
                stats.values += 1
            elif entry.state is EntryState.ERROR:
                stats.errors += 1
            if entry.subscriber_count > 0:
                stats.subscribed += 1
            if entry.is_expiring:
                stats.expiring += 1
        return stats
