"""The transport protocol consumed by :class:`~reqcache.cache.engine.CacheEngine`."""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Performs ``method, url, body -> value`` and raises on failure.

    Implementations raise :class:`~reqcache.exceptions.NotFoundError` for
    HTTP 404 and another :class:`~reqcache.exceptions.TransportError`
    subclass for every other failure.  The engine relies on that split to
    cache ``None`` for missing resources.
    """

    async def request(self, method: str, url: str, body: Optional[Any] = None) -> Any:
        ...
