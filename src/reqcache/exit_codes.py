"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to an error category and is referenced by the matching
:class:`~reqcache.exceptions.ReqcacheError` subclass, so shell scripts can
branch on ``$?`` without parsing stderr.

Example::

    $ reqcache get /users/5
    $ echo $?
    4   # EXIT_NOT_FOUND -- the resource does not exist
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""The remote API rejected the credentials (HTTP 401/403)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API answered with an HTTP error status other than 401/403/404."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CACHE_MISUSE = 8
"""The cache engine was driven outside its read protocols (a programming error)."""
