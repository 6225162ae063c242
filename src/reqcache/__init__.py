"""reqcache -- a client-side request cache with suspending reads.

Code reads remote resources as if they were local: a read either returns
the cached value or suspends until the single shared fetch for that key
settles, after which the read is simply run again.  The engine coalesces
concurrent fetches, tracks which keys each reader actually used, evicts
unused entries after a grace period, and refreshes matching entries in one
flicker-free batch with ``touch``.

Typical use::

    async with HttpTransport(profile) as transport:
        engine = CacheEngine(transport)
        reader = engine.reader()
        user = await reader.render(lambda r: r.api.users[5]())
        await engine.touch("users")

Modules:
    cache: The engine, readers, and snapshot persistence.
    transport: The httpx-backed transport collaborator.
    keys: Canonical resource keys and the fluent URL builder.
    config: XDG-aware configuration and profile management.
    models: Pydantic models for configuration and reporting.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.3.0"

from reqcache.cache import CacheEngine, IdExtractor, Pending, Reader, SnapshotStore
from reqcache.keys import make_key
from reqcache.transport import HttpTransport

__all__ = [
    "CacheEngine",
    "HttpTransport",
    "IdExtractor",
    "Pending",
    "Reader",
    "SnapshotStore",
    "make_key",
]
