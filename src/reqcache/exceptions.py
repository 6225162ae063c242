"""Exception hierarchy for reqcache.

All exceptions inherit from :class:`ReqcacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`reqcache.exit_codes`.
The CLI entry point in :func:`reqcache.app.main` catches ``ReqcacheError``
and exits with that code.

Transport failures share the :class:`TransportError` base and carry the HTTP
``status`` and decoded ``body``.  The cache engine stores them as error
outcomes and re-raises the same instance on every later read of the key.

Subclass hierarchy::

    ReqcacheError (exit 1)
    +-- InvalidUsageError     (exit 2)
    +-- ConfigError           (exit 1)
    +-- CacheMisuseError      (exit 8)
    +-- TransportError        (exit 5)
        +-- AuthError         (exit 3)
        +-- NotFoundError     (exit 4)
        +-- RequestError      (exit 5)
        +-- ServerError       (exit 5)
        +-- ConnectionError_  (exit 6)
"""

from __future__ import annotations

from typing import Any

from reqcache.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CACHE_MISUSE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class ReqcacheError(Exception):
    """Base exception for all reqcache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ReqcacheError):
    """Raised for invalid CLI arguments (bad ``key=value`` pairs, unknown methods)."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(ReqcacheError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheMisuseError(ReqcacheError):
    """Raised when the engine is driven outside the suspending or direct read protocols.

    Examples are calling :meth:`~reqcache.cache.reader.Reader.read` outside
    an evaluation pass, or reading a missing key with no running event loop
    to fetch it on.  These are programming errors and are never cached.
    """

    exit_code = EXIT_CACHE_MISUSE


class TransportError(ReqcacheError):
    """A request failed.  Cached by the engine as the key's error outcome.

    Args:
        message: Human-readable description.
        status: HTTP status code, or ``None`` for network-level failures.
        body: Decoded response body, if any.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str, status: int | None = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


class AuthError(TransportError):
    """Raised when the API answers HTTP 401 or 403."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(TransportError):
    """Raised when the API answers HTTP 404.

    The cache engine never stores this error: a 404 on a cached read becomes
    a cached ``None`` value.
    """

    exit_code = EXIT_NOT_FOUND


class RequestError(TransportError):
    """Raised for HTTP 4xx responses other than 401, 403 and 404."""


class ServerError(TransportError):
    """Raised when the API returns an HTTP 5xx server error."""


class ConnectionError_(TransportError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
