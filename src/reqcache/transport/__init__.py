"""Transport collaborators for the cache engine.

:class:`Transport` is the protocol the engine fetches through;
:class:`HttpTransport` implements it on top of :class:`httpx.AsyncClient`
using a :class:`~reqcache.models.Profile` for base URL, headers and
credentials.

Example::

    from reqcache.transport import HttpTransport

    async with HttpTransport(profile) as transport:
        user = await transport.request("GET", "/users/5")
"""

from reqcache.transport.base import Transport
from reqcache.transport.http import HttpTransport

__all__ = ["Transport", "HttpTransport"]
