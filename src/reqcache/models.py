"""Pydantic models shared across reqcache modules.

**Configuration models** -- serialised as JSON in the user's config
directory: :class:`AuthConfig`, :class:`RequestConfig`,
:class:`CacheConfig`, :class:`OutputConfig`, :class:`GlobalConfig` and
:class:`Profile`.

**Reporting models** -- produced by the cache engine for the CLI:
:class:`EntryInfo` and :class:`CacheStats`.

All models use Pydantic v2.  :class:`Profile` accepts unknown keys
(``extra="allow"``) so hand-edited profile files survive a round trip.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Profile sections ---


class AuthConfig(BaseModel):
    """Credential injection for every request sent through a :class:`Profile`.

    Example::

        AuthConfig(type="bearer", source="env:API_TOKEN")
        AuthConfig(type="api_key", header="X-API-Key", source="file:~/.api-key")
    """

    type: Literal["bearer", "api_key", "header"] = Field(
        default="bearer", description="bearer, api_key or header"
    )
    header: str = Field(
        default="Authorization", description="Header carrying the credential"
    )
    prefix: Optional[str] = Field(
        default=None,
        description="Value prefix; defaults to 'Bearer' for bearer auth",
    )
    source: str = Field(
        default="prompt", description="Credential source: env:VAR, file:/path, prompt"
    )


class RequestConfig(BaseModel):
    """HTTP settings applied to every request of a profile."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Extra headers sent with every request"
    )


class CacheConfig(BaseModel):
    """Cache engine and snapshot settings stored in :class:`GlobalConfig`."""

    grace_period_seconds: float = Field(
        default=180, description="Delay between losing the last reader and eviction"
    )
    speculative_ttl_seconds: Optional[float] = Field(
        default=180,
        description="Expiry for entries nobody has read yet (null keeps them forever)",
    )
    persist: bool = Field(default=True, description="Persist snapshots between runs")
    snapshot_ttl_seconds: int = Field(
        default=300, description="Lifetime of persisted snapshot entries"
    )
    derive_by_id: bool = Field(
        default=True, description="Seed item entries from list responses"
    )
    id_field: str = Field(default="id", description="Identifier field for derived items")


class OutputConfig(BaseModel):
    """Default output format preferences."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Output format used when no --json or --plain flag is given"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/reqcache/config.json``.

    Lowest precedence in :func:`~reqcache.config.resolve_config`; project
    config, environment variables and CLI flags override it.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


class Profile(BaseModel):
    """One API target, stored as JSON under the ``profiles/`` config directory.

    See Also:
        :func:`~reqcache.config.load_profile`: Deserialise a profile by name.
        :func:`~reqcache.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    base_url: str = Field(description="Base URL every resource key is resolved against")
    auth: Optional[AuthConfig] = None
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: dict[str, Any] = Field(
        default_factory=dict,
        description="Overrides of the global cache section for this API, e.g. {\"grace_period_seconds\": 30}",
    )


# --- Reporting ---


class EntryInfo(BaseModel):
    """A read-only view of one cache entry."""

    key: str
    state: str
    subscribers: int
    dependents: list[str] = Field(default_factory=list)
    expiring: bool = False


class CacheStats(BaseModel):
    """Aggregate counters for a :class:`~reqcache.cache.engine.CacheEngine`."""

    entries: int = 0
    pending: int = 0
    values: int = 0
    errors: int = 0
    subscribed: int = 0
    expiring: int = 0
    listeners: int = 0
