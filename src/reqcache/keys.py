"""Resource keys and the fluent URL builder.

A resource key is the request path plus its serialised query string.  The
cache engine treats keys as opaque strings: exact equality for lookups and
substring containment for :meth:`~reqcache.cache.engine.CacheEngine.touch`.
:func:`make_key` therefore has to be canonical -- the same path and
parameters always produce the same string regardless of argument order.

:class:`UrlBuilder` turns attribute and item access into path segments::

    api.users[5]()                  # GET  /users/5
    api.users({"active": True})     # GET  /users?active=true
    api.users.post(body={...})      # POST /users
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Optional
from urllib.parse import quote, urlencode

METHODS = ("get", "post", "put", "patch", "delete")


def _encode_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def make_key(path: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build the canonical resource key for *path* and *params*.

    Parameters are sorted by name and ``None`` values dropped.  List and
    tuple values use the bracket array format (``tag[]=a&tag[]=b``).

    Example::

        >>> make_key("/users", {"page": 2, "active": True})
        '/users?active=true&page=2'
    """
    if not path.startswith("/"):
        path = "/" + path
    if not params:
        return path

    pairs: list[tuple[str, str]] = []
    for name in sorted(params):
        value = params[name]
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((f"{name}[]", _encode_scalar(v)) for v in value)
        else:
            pairs.append((name, _encode_scalar(value)))

    if not pairs:
        return path
    return f"{path}?{urlencode(pairs, safe='[]')}"


def strip_query(key: str) -> str:
    """Return the path portion of a resource key."""
    return key.split("?", 1)[0]


RequestCallback = Callable[[str, str, Optional[Mapping[str, Any]], Any], Any]


class UrlBuilder:
    """Accumulates path segments and dispatches to *callback* when called.

    Args:
        callback: ``callback(method, path, params, body)``; its return value
            is returned from the call.
        segments: Path segments collected so far.
    """

    __slots__ = ("_callback", "_segments")

    def __init__(self, callback: RequestCallback, segments: tuple[str, ...] = ()) -> None:
        self._callback = callback
        self._segments = segments

    def __getattr__(self, segment: str) -> UrlBuilder:
        if segment.startswith("__"):
            raise AttributeError(segment)
        return UrlBuilder(self._callback, (*self._segments, segment))

    def __getitem__(self, segment: Any) -> UrlBuilder:
        return UrlBuilder(self._callback, (*self._segments, quote(str(segment), safe="")))

    def __call__(self, params: Optional[Mapping[str, Any]] = None, body: Any = None) -> Any:
        segments = self._segments
        method = "get"
        if segments and segments[-1] in METHODS:
            method = segments[-1]
            segments = segments[:-1]
        return self._callback(method.upper(), "/" + "/".join(segments), params, body)

    def __repr__(self) -> str:
        return f"UrlBuilder('/{'/'.join(self._segments)}')"
