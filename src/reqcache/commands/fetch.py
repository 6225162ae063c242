"""Fetch commands -- read resources through the cache engine.

``reqcache get`` and ``reqcache preload`` answer from the persisted
snapshot when they can and fetch otherwise; ``reqcache request`` is a
direct-mode call that bypasses the cache and then invalidates the
persisted entries of the path it changed.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import typer

from reqcache.exceptions import InvalidUsageError
from reqcache.keys import METHODS, make_key, strip_query
from reqcache.output import format_response, info, success


def parse_params(pairs: Optional[list[str]]) -> dict[str, str]:
    """Turn repeated ``key=value`` options into a dict.

    Raises:
        InvalidUsageError: A pair has no ``=``.
    """
    params: dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise InvalidUsageError(f"Expected key=value, got: {pair}")
        params[name] = value
    return params


def parse_body(body: Optional[str]) -> Any:
    """Parse *body* as JSON when possible, returning the raw string otherwise."""
    if body is None:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body


def _session_args(ctx: typer.Context) -> tuple[Optional[str], Optional[str]]:
    obj = ctx.obj or {}
    return obj.get("profile"), obj.get("base_url")


def get_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Resource path, e.g. /users/5."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter as key=value (repeatable)."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Ignore and do not update the persisted snapshot."
    ),
) -> None:
    """Read a resource through the cache and print it.

    A 404 prints ``null``; other HTTP failures exit with their error code.

    Example::

        reqcache get /users/5
        reqcache get /users -P active=true --json
    """
    from reqcache.session import open_session, require_profile

    config, profile = require_profile(*_session_args(ctx))
    key = make_key(path, parse_params(param))

    async def _run() -> Any:
        async with open_session(config, profile, use_snapshot=not no_cache) as engine:
            with engine.reader() as reader:
                return await reader.render(lambda r: r.read(key))

    format_response(asyncio.run(_run()))


def preload_command(
    ctx: typer.Context,
    paths: list[str] = typer.Argument(help="Resource paths to warm."),
) -> None:
    """Fetch several resources in parallel into the persisted snapshot.

    Example::

        reqcache preload /users /projects /projects/7
    """
    from reqcache.session import open_session, require_profile

    config, profile = require_profile(*_session_args(ctx))
    keys = [make_key(p) for p in paths]

    async def _run() -> None:
        async with open_session(config, profile) as engine:
            await engine.preload(lambda r: r.read_many(keys))

    asyncio.run(_run())
    success(f"Preloaded {len(keys)} resource(s).")


def request_command(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP method: get, post, put, patch, delete."),
    path: str = typer.Argument(help="Resource path."),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Request body (JSON)."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter as key=value (repeatable)."
    ),
) -> None:
    """Send a request directly, bypassing the cache, then invalidate the path.

    Example::

        reqcache request post /users --body '{"name": "B"}'
    """
    from reqcache.session import open_session, require_profile

    verb = method.lower()
    if verb not in METHODS:
        raise InvalidUsageError(f"Unknown method: {method}")
    config, profile = require_profile(*_session_args(ctx))
    key = make_key(path, parse_params(param))

    async def _run() -> Any:
        async with open_session(config, profile) as engine:
            result = await engine.request(verb.upper(), key, parse_body(body))
            await engine.touch(strip_query(key))
            return result

    result = asyncio.run(_run())
    format_response(result)
    info(f"Invalidated cached entries under {strip_query(key)}")
