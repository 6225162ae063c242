"""Asynchronous HTTP transport backed by :class:`httpx.AsyncClient`.

:class:`HttpTransport` sends exactly one attempt per call -- the cache
engine owns freshness through ``touch`` and never retries on its own --
and maps error statuses onto the :class:`~reqcache.exceptions.TransportError`
family so the engine can tell a missing resource (404) from a failure.

Decoded bodies are returned as-is: JSON when the response declares it,
text otherwise, ``None`` for empty bodies.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from reqcache.config import resolve_credential
from reqcache.exceptions import (
    AuthError,
    ConnectionError_,
    NotFoundError,
    RequestError,
    ServerError,
    TransportError,
)
from reqcache.models import AuthConfig, Profile

logger = logging.getLogger(__name__)


class HttpTransport:
    """HTTP transport for one :class:`~reqcache.models.Profile`.

    Must be used as an async context manager so the connection pool is
    opened and closed around the engine's lifetime.

    Args:
        profile: Connection profile (``base_url``, ``request`` settings,
            optional ``auth``).
        transport: Optional :class:`httpx.AsyncBaseTransport`, mainly for
            tests using :class:`httpx.MockTransport`.

    Example::

        async with HttpTransport(profile) as transport:
            engine = CacheEngine(transport)
    """

    def __init__(
        self,
        profile: Profile,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._profile = profile
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> HttpTransport:
        config = self._profile.request
        headers = dict(config.headers)
        if self._profile.auth is not None:
            headers.update(_auth_headers(self._profile.auth))
        self._client = httpx.AsyncClient(
            base_url=self._profile.base_url,
            headers=headers,
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(self, method: str, url: str, body: Optional[Any] = None) -> Any:
        """Send one request and return the decoded response body.

        Args:
            method: HTTP method.
            url: Resource key, resolved against the profile's base URL.
            body: JSON-serialisable request body.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            RequestError: On other 4xx statuses.
            ServerError: On 5xx.
            ConnectionError_: On network and timeout errors.
        """
        assert self._client is not None, "Transport not open -- use as async context manager"

        kwargs: dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body

        logger.debug("%s %s", method, url)
        try:
            response = await self._client.request(method, url, **kwargs)
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            raise ConnectionError_(f"{method} {url} failed: {exc}") from exc

        if response.status_code >= 400:
            raise _map_error(response)
        return _decode(response)


def _auth_headers(auth: AuthConfig) -> dict[str, str]:
    credential = resolve_credential(auth.source)
    prefix = auth.prefix
    if prefix is None and auth.type == "bearer":
        prefix = "Bearer"
    return {auth.header: f"{prefix} {credential}" if prefix else credential}


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    if "json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


def _map_error(response: httpx.Response) -> TransportError:
    """Build the typed exception for an error status."""
    status = response.status_code
    detail = _decode(response)
    msg = ""
    if isinstance(detail, dict):
        msg = str(detail.get("message") or detail.get("error") or detail.get("detail") or "")
    elif isinstance(detail, str):
        msg = detail[:200]
    full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

    if status in (401, 403):
        return AuthError(full_msg, status=status, body=detail)
    if status == 404:
        return NotFoundError(full_msg, status=status, body=detail)
    if status >= 500:
        return ServerError(full_msg, status=status, body=detail)
    return RequestError(full_msg, status=status, body=detail)
