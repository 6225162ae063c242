"""Suspending reads, the render-and-retry driver, and per-reader interest sets.

A :class:`Reader` is one participant that reads cached resources inside
*evaluation passes*.  Inside a pass a read never waits: a miss raises
:class:`Pending` carrying the in-flight future, and the driver
(:meth:`Reader.render`) awaits that future and re-runs the whole pass from
the start.  Because a pass may run several times for one result it must
not have side effects beyond reading.

Only the keys read by the last *completed* pass count as the reader's
interest.  Committing a pass diffs that set against the previous one:
new keys are retained, dropped keys released (which may arm their
deletion timers).

Outside a pass the reader is in direct mode: :meth:`Reader.get` returns a
coroutine that calls the transport without touching the cache.

Example::

    reader = engine.reader()
    user = await reader.render(lambda r: r.api.users[5]())
    await reader.post("/users", body={"name": "B"})
    await engine.touch("users")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from typing import TYPE_CHECKING, Any, Callable, NamedTuple, Optional, TypeVar

from reqcache.exceptions import CacheMisuseError
from reqcache.keys import UrlBuilder, make_key

if TYPE_CHECKING:
    from reqcache.cache.engine import CacheEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Pending(BaseException):
    """Raised by a suspending read whose key has no value yet.

    Derives from :class:`BaseException`, like :class:`asyncio.CancelledError`,
    so ``except Exception`` error handling inside a pass lets it through to
    the driver.

    Attributes:
        key: The resource key being fetched.
        future: The shared in-flight future for that key.
    """

    def __init__(self, key: str, future: asyncio.Future[Any]) -> None:
        super().__init__(f"{key} is not available yet")
        self.key = key
        self.future = future

    async def wait(self) -> None:
        """Wait for the future to settle without raising its outcome.

        Always yields to the loop at least once so the engine's completion
        callback has stored the outcome before the pass is re-run.
        """
        await asyncio.wait({self.future})


class SuspendResult(NamedTuple):
    """Outcome of :meth:`Reader.suspend`: the data, or the default while loading."""

    data: Any
    loading: bool


class Reader:
    """One render participant of a :class:`~reqcache.cache.engine.CacheEngine`.

    Args:
        engine: The owning engine.
        on_change: Called once per batch of changes to keys this reader
            committed interest in.
        track_interest: When ``False`` the reader is detached: it neither
            retains keys nor listens for changes (used by ``preload``).
    """

    def __init__(
        self,
        engine: CacheEngine,
        on_change: Optional[Callable[[], None]] = None,
        *,
        track_interest: bool = True,
    ) -> None:
        self._engine = engine
        self._on_change = on_change
        self._track = track_interest
        self._committed: set[str] = set()
        self._pass_keys: Optional[set[str]] = None
        self._change_scheduled = False
        self._closed = False
        self.passes = 0
        self.change_count = 0
        self._subscription = (
            engine.registry.subscribe(self._on_key_changed) if track_interest else None
        )
        self.api = UrlBuilder(self._request)

    def __enter__(self) -> Reader:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def suspending(self) -> bool:
        """True while an evaluation pass is running."""
        return self._pass_keys is not None

    @property
    def keys(self) -> frozenset[str]:
        """Keys committed by the last completed pass."""
        return frozenset(self._committed)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def read(self, key: str) -> Any:
        """Suspending read of *key*; only valid inside an evaluation pass.

        Raises:
            Pending: The value is being fetched.
            CacheMisuseError: Called outside a pass.
        """
        if self._pass_keys is None:
            raise CacheMisuseError(
                f"read({key!r}) outside an evaluation pass; await get() for a direct request"
            )
        return self._engine.read(key, self._pass_keys)

    def read_many(self, keys: list[str]) -> list[Any]:
        """Read every key, starting all missing fetches before suspending.

        Reading keys one by one would suspend on the first miss and fetch
        the rest sequentially across re-runs.

        Raises:
            Pending: For the first key still missing, after every fetch
                has been started.
        """
        values: list[Any] = []
        first_pending: Optional[Pending] = None
        for key in keys:
            try:
                values.append(self.read(key))
            except Pending as pending:
                if first_pending is None:
                    first_pending = pending
        if first_pending is not None:
            raise first_pending
        return values

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Read inside a pass, or return a direct-mode request coroutine outside one."""
        key = make_key(path, params)
        if self.suspending:
            return self.read(key)
        return self._engine.request("GET", key)

    def post(self, path: str, body: Any = None, params: Optional[Mapping[str, Any]] = None) -> Awaitable[Any]:
        return self._engine.request("POST", make_key(path, params), body)

    def put(self, path: str, body: Any = None, params: Optional[Mapping[str, Any]] = None) -> Awaitable[Any]:
        return self._engine.request("PUT", make_key(path, params), body)

    def patch(self, path: str, body: Any = None, params: Optional[Mapping[str, Any]] = None) -> Awaitable[Any]:
        return self._engine.request("PATCH", make_key(path, params), body)

    def delete(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Awaitable[Any]:
        return self._engine.request("DELETE", make_key(path, params))

    def _request(self, method: str, path: str, params: Optional[Mapping[str, Any]], body: Any) -> Any:
        if method == "GET":
            return self.get(path, params)
        return self._engine.request(method, make_key(path, params), body)

    # ------------------------------------------------------------------ #
    # Evaluation passes
    # ------------------------------------------------------------------ #

    def evaluate(self, fn: Callable[[Reader], T]) -> T:
        """Run one pass of *fn* and commit its interest set if it completes.

        A pass that raises (including :class:`Pending`) commits nothing.
        """
        self._ensure_open()
        if self._pass_keys is not None:
            raise CacheMisuseError("evaluation passes cannot be nested")

        keys = self._pass_keys = set()
        self.passes += 1
        try:
            result = fn(self)
        finally:
            self._pass_keys = None
        self._commit(keys)
        return result

    async def render(self, fn: Callable[[Reader], T]) -> T:
        """Re-run *fn* from the start until a pass completes without suspending.

        Non-pending exceptions, including cached transport errors, propagate
        from the failing pass.
        """
        started = self.passes
        while True:
            try:
                result = self.evaluate(fn)
            except Pending as pending:
                logger.debug("Pass suspended on %s", pending.key)
                await pending.wait()
                continue
            logger.debug("Render settled after %d pass(es)", self.passes - started)
            return result

    def suspend(self, call: Callable[[], T], default: Optional[T] = None) -> SuspendResult:
        """Run *call* inside the current pass, turning a suspension into a loading result.

        The reader is notified through ``on_change`` once the awaited value
        lands, so the caller can render a placeholder now and re-evaluate
        later.
        """
        try:
            return SuspendResult(call(), False)
        except Pending as pending:
            pending.future.add_done_callback(lambda _: self._schedule_change())
            return SuspendResult(default, True)

    def close(self) -> None:
        """Release every committed key and stop listening for changes."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._engine.registry.unsubscribe(self._subscription)
        committed, self._committed = self._committed, set()
        for key in committed:
            self._engine.release(key)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _commit(self, keys: set[str]) -> None:
        if not self._track:
            return
        added = keys - self._committed
        removed = self._committed - keys
        self._committed = keys
        for key in added:
            self._engine.retain(key)
        for key in removed:
            self._engine.release(key)

    def _ensure_open(self) -> None:
        if self._closed:
            raise CacheMisuseError("reader is closed")

    def _on_key_changed(self, key: str) -> None:
        if key in self._committed:
            self._schedule_change()

    def _schedule_change(self) -> None:
        if self._closed or self._change_scheduled:
            return
        self._change_scheduled = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._dispatch_change()
            return
        loop.call_soon(self._dispatch_change)

    def _dispatch_change(self) -> None:
        self._change_scheduled = False
        if self._closed:
            return
        self.change_count += 1
        logger.debug("Delivering change %d to reader", self.change_count)
        if self._on_change is not None:
            self._on_change()
