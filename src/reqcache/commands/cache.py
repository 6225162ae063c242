"""Cache commands -- inspect and invalidate the persisted snapshot.

The snapshot is what lets one ``reqcache get`` answer from an earlier
invocation's fetch.  These commands operate on the active profile's
snapshot directory.
"""

from __future__ import annotations

import asyncio
from typing import Any

import typer

from reqcache.output import format_response, info, print_table, success

cache_app = typer.Typer(no_args_is_help=True)


def _active(ctx: typer.Context) -> tuple[Any, Any]:
    from reqcache.session import require_profile

    obj = ctx.obj or {}
    return require_profile(obj.get("profile"), obj.get("base_url"))


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, list):
        return f"list[{len(value)}]"
    if isinstance(value, dict):
        return f"object[{len(value)}]"
    return type(value).__name__


@cache_app.command("list")
def cache_list(ctx: typer.Context) -> None:
    """List persisted resource keys.

    Example::

        reqcache cache list --plain
    """
    from reqcache.session import open_snapshot

    config, profile = _active(ctx)
    with open_snapshot(config, profile) as snapshot:
        entries = snapshot.load()
    if not entries:
        info("Snapshot is empty.")
        return
    rows = [[key, _describe(value)] for key, value in sorted(entries.items())]
    print_table(["Key", "Value"], rows, title=f"Snapshot: {profile.name}")


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show snapshot size, location and expiry."""
    from reqcache.session import open_snapshot

    config, profile = _active(ctx)
    with open_snapshot(config, profile) as snapshot:
        stats = snapshot.stats()
    stats["grace_period_seconds"] = config.cache.grace_period_seconds
    stats["persist"] = config.cache.persist
    format_response(stats)


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
) -> None:
    """Remove every persisted entry of the active profile.

    Asks for confirmation unless ``--force`` is active.
    """
    from reqcache.session import open_snapshot

    config, profile = _active(ctx)
    force = (ctx.obj or {}).get("force", False)
    if not force and not typer.confirm(f"Clear the snapshot of '{profile.name}'?"):
        info("Cancelled.")
        raise typer.Exit()
    with open_snapshot(config, profile) as snapshot:
        removed = snapshot.clear()
    success(f"Removed {removed} entries.")


@cache_app.command("invalidate")
def cache_invalidate(
    ctx: typer.Context,
    fragments: list[str] = typer.Argument(help="Key fragments; 'users' matches /users/5."),
) -> None:
    """Invalidate persisted entries whose key contains any fragment.

    Example::

        reqcache cache invalidate users projects/7
    """
    from reqcache.session import open_session

    config, profile = _active(ctx)

    async def _run() -> int:
        async with open_session(config, profile) as engine:
            before = len(engine.store)
            await engine.touch(*fragments)
            return before - len(engine.store)

    removed = asyncio.run(_run())
    success(f"Invalidated {removed} entries.")


@cache_app.command("entries")
def cache_entries(
    ctx: typer.Context,
    summary: bool = typer.Option(False, "--summary", "-s", help="Print counters instead of rows."),
) -> None:
    """Show the engine's view of the restored snapshot.

    Each row gives the entry's state, subscriber count, derived keys and
    whether a deletion timer is armed.

    Example::

        reqcache cache entries
        reqcache cache entries --summary --json
    """
    from reqcache.session import open_session

    config, profile = _active(ctx)

    async def _run() -> tuple[Any, Any]:
        async with open_session(config, profile) as engine:
            return engine.entries(), engine.stats()

    entries, stats = asyncio.run(_run())
    if summary:
        format_response(stats.model_dump())
        return
    if not entries:
        info("Cache is empty.")
        return
    rows = [
        [
            entry.key,
            entry.state,
            str(entry.subscribers),
            ", ".join(sorted(entry.dependents)),
            "yes" if entry.expiring else "no",
        ]
        for entry in sorted(entries, key=lambda e: e.key)
    ]
    print_table(
        ["Key", "State", "Subscribers", "Dependents", "Expiring"],
        rows,
        title=f"Engine: {profile.name}",
    )
