"""Shared test fixtures for reqcache.

Provides an in-memory fake transport for driving the cache engine,
isolated config environments, output state management, and a CLI runner.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import pytest

from reqcache.exceptions import NotFoundError, ServerError
from reqcache.models import Profile, RequestConfig
from reqcache.output import reset_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _detach_log_handlers() -> None:
    """Drop the RichHandler the CLI callback installs on the ``reqcache`` logger.

    Its console points at the CliRunner's stream, which is closed once the
    invocation returns.
    """
    yield
    root = logging.getLogger("reqcache")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------


class FakeTransport:
    """In-memory transport answering GETs from a routes table.

    Args:
        routes: Resource key to response value.  A value that is an
            exception instance is raised instead of returned.  Keys absent
            from the table answer with :class:`NotFoundError`.
        delays: Per-key latency in seconds.

    Attributes:
        calls: Every ``(method, key)`` received, in order.
    """

    def __init__(
        self,
        routes: Optional[dict[str, Any]] = None,
        delays: Optional[dict[str, float]] = None,
    ) -> None:
        self.routes: dict[str, Any] = dict(routes or {})
        self.delays: dict[str, float] = dict(delays or {})
        self.calls: list[tuple[str, str]] = []

    def count(self, key: str, method: str = "GET") -> int:
        return self.calls.count((method, key))

    async def request(self, method: str, url: str, body: Optional[Any] = None) -> Any:
        self.calls.append((method, url))
        await asyncio.sleep(self.delays.get(url, 0))
        if method != "GET":
            return {"method": method, "url": url, "body": body}
        if url not in self.routes:
            raise NotFoundError(f"HTTP 404: {url}", status=404)
        value = self.routes[url]
        if isinstance(value, BaseException):
            raise value
        return value


@pytest.fixture
def transport() -> FakeTransport:
    """A fake transport serving a small users collection."""
    return FakeTransport(
        {
            "/users": [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}],
            "/users/1": {"id": 1, "name": "A", "detail": True},
            "/users/3": {"id": 3, "name": "C"},
            "/projects": [{"id": 7, "title": "P"}],
            "/broken": ServerError("HTTP 500: boom", status=500),
        }
    )


# ---------------------------------------------------------------------------
# Profile fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_profile() -> Profile:
    """A profile pointing at a local test API with relaxed request settings."""
    return Profile(
        name="test-api",
        base_url="http://localhost:8080",
        request=RequestConfig(timeout=5, verify_ssl=False),
    )


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config.  Clears all REQCACHE_* environment variables and changes
    the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("reqcache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["REQCACHE_PROFILE", "REQCACHE_BASE_URL"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
