"""Engine sessions for one CLI invocation.

A CLI process is short-lived, so cached state only survives between
invocations through a :class:`~reqcache.cache.snapshot.SnapshotStore`.
:func:`open_session` wires the pieces together: open the HTTP transport,
build the engine from config, restore the persisted snapshot, and on
clean exit write back what changed.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx

from reqcache.cache import CacheEngine, SnapshotStore
from reqcache.config import get_cache_dir, resolve_config
from reqcache.exceptions import ConfigError
from reqcache.models import GlobalConfig, Profile
from reqcache.transport import HttpTransport

logger = logging.getLogger(__name__)


def require_profile(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> tuple[GlobalConfig, Profile]:
    """Resolve the active profile or fail with a hint.

    Raises:
        ConfigError: No profile is selected and none can be auto-selected.
    """
    config, profile = resolve_config(cli_profile=cli_profile, cli_base_url=cli_base_url)
    if profile is None:
        raise ConfigError(
            "No profile selected. Create one with 'reqcache profile add' or pass --profile."
        )
    return config, profile


def open_snapshot(config: GlobalConfig, profile: Profile) -> SnapshotStore:
    return SnapshotStore(get_cache_dir(), profile.name, config.cache.snapshot_ttl_seconds)


def sync_snapshot(snapshot: SnapshotStore, restored: dict[str, Any], current: dict[str, Any]) -> int:
    """Write back new or changed values and drop keys the engine no longer holds.

    Unchanged keys keep their original expiry so repeated runs cannot keep
    stale data alive forever.

    Returns:
        The number of keys written.
    """
    snapshot.remove(key for key in restored if key not in current)
    changed = {
        key: value
        for key, value in current.items()
        if key not in restored or restored[key] != value
    }
    return snapshot.dump(changed)


@asynccontextmanager
async def open_session(
    config: GlobalConfig,
    profile: Profile,
    use_snapshot: bool = True,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[CacheEngine]:
    """Yield a ready :class:`~reqcache.cache.engine.CacheEngine` for *profile*.

    Args:
        config: Global config; its ``cache`` section configures the engine.
        profile: Target API.
        use_snapshot: Restore and persist the on-disk snapshot.  Ignored
            when ``config.cache.persist`` is off.
        http_transport: Optional httpx transport override (tests).
    """
    persist = use_snapshot and config.cache.persist
    snapshot = open_snapshot(config, profile) if persist else None
    try:
        async with HttpTransport(profile, transport=http_transport) as transport:
            engine = CacheEngine.from_config(transport, config.cache)
            restored: dict[str, Any] = {}
            if snapshot is not None:
                restored = snapshot.load()
                engine.restore(restored)
                logger.debug("Restored %d entries from %s", len(restored), snapshot.directory)
            yield engine
            if snapshot is not None:
                written = sync_snapshot(snapshot, restored, engine.save())
                logger.debug("Persisted %d changed entries", written)
            engine.reset()
    finally:
        if snapshot is not None:
            snapshot.close()
