"""Configuration: where reqcache keeps its files and which settings win.

Three JSON sources feed a run, lowest precedence first:

* ``config.json`` in the config directory -- a :class:`~reqcache.models.GlobalConfig`
  with the cache engine timings and output defaults;
* ``profiles/<name>.json`` -- one :class:`~reqcache.models.Profile` per API,
  which may override parts of the ``cache`` section for that API only;
* ``./reqcache.json`` -- project config pinning a profile and, optionally,
  further ``cache`` overrides for the working tree.

``REQCACHE_PROFILE``/``REQCACHE_BASE_URL`` and the CLI flags sit on top.
Directories follow XDG on Linux/BSD and live under ``~/.reqcache/``
elsewhere.  Every write goes through :func:`_atomic_write`.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import BaseModel

from reqcache.exceptions import ConfigError
from reqcache.models import CacheConfig, GlobalConfig, Profile

_APP_NAME = "reqcache"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "reqcache.json"

# kind -> (XDG variable, default under $HOME, subdirectory of ~/.reqcache)
_DIRS: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "cache": ("XDG_CACHE_HOME", (".cache",), "cache"),
    "data": ("XDG_DATA_HOME", (".local", "share"), "logs"),
}

M = TypeVar("M", bound=BaseModel)


# --- Directories ---


def _is_xdg_platform() -> bool:
    """Return True on platforms following the XDG Base Directory spec (Linux/BSD)."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_segments, fallback = _DIRS[kind]
    if _is_xdg_platform():
        base = Path(os.environ.get(env_var) or Path.home().joinpath(*home_segments))
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback:
            path = path / fallback
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json`` and ``profiles/``."""
    return _app_dir("config")


def get_cache_dir() -> Path:
    """Directory holding one snapshot store per profile."""
    return _app_dir("cache")


def get_data_dir() -> Path:
    """Directory holding crash logs."""
    return _app_dir("data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- File I/O ---


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* through a temp file in the same directory.

    A failed write leaves the old file untouched and no temp file behind.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise


def _write_model(path: Path, model: BaseModel) -> None:
    _atomic_write(path, json.dumps(model.model_dump(mode="json"), indent=2) + "\n")


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _load_model(path: Path, model: type[M], what: str) -> M:
    data = _read_json(path, what)
    try:
        return model.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load ``config.json``, or defaults when it does not exist.

    Raises:
        ConfigError: The file is not valid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    return _load_model(path, GlobalConfig, "global config")


def save_global_config(config: GlobalConfig) -> None:
    _write_model(_global_config_path(), config)


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> Profile:
    """Load the profile called *name*.

    Raises:
        ConfigError: The profile is missing or invalid.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    return _load_model(path, Profile, f"profile '{name}'")


def save_profile(profile: Profile) -> None:
    _write_model(_profile_path(profile.name), profile)


def delete_profile(name: str) -> None:
    """Remove the profile called *name*.

    Raises:
        ConfigError: The profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


# --- Project config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load ``./reqcache.json`` if present.

    Raises:
        ConfigError: The file exists but is not valid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


# --- Resolution ---


def merge_cache_config(base: CacheConfig, overrides: dict[str, Any], origin: str) -> CacheConfig:
    """Apply partial ``cache`` *overrides* on top of *base*.

    Raises:
        ConfigError: An override names an unknown field or has a bad value.
    """
    if not overrides:
        return base
    unknown = sorted(set(overrides) - set(CacheConfig.model_fields))
    if unknown:
        raise ConfigError(f"Unknown cache setting(s) in {origin}: {', '.join(unknown)}")
    try:
        return CacheConfig.model_validate({**base.model_dump(), **overrides})
    except ValueError as exc:
        raise ConfigError(f"Invalid cache setting in {origin}: {exc}") from exc


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[Profile]]:
    """Resolve the global config and the active profile for one run.

    The profile name comes from, highest first: *cli_profile*,
    ``REQCACHE_PROFILE``, ``./reqcache.json``, ``default_profile``, and
    finally the only saved profile when ``auto_select_single_profile`` is on.
    The base URL from *cli_base_url* or ``REQCACHE_BASE_URL`` replaces the
    profile's.  The returned config's ``cache`` section already carries the
    profile's and then the project's overrides.

    Returns:
        ``(global_config, profile_or_None)``.
    """
    config = load_global_config()
    project = load_project_config() or {}

    name = (
        cli_profile
        or os.environ.get("REQCACHE_PROFILE")
        or project.get("default_profile")
        or config.default_profile
    )
    if name is None and config.auto_select_single_profile:
        profiles = list_profiles()
        if len(profiles) == 1:
            name = profiles[0]

    profile = load_profile(name) if name is not None else None
    if profile is not None:
        profile.base_url = cli_base_url or os.environ.get("REQCACHE_BASE_URL") or profile.base_url
        config.cache = merge_cache_config(config.cache, profile.cache, f"profile '{profile.name}'")
    config.cache = merge_cache_config(config.cache, project.get("cache") or {}, "project config")
    return config, profile


# --- Credentials ---


def resolve_credential(source: str) -> str:
    """Read a secret from ``env:VAR``, ``file:/path`` or ``prompt``.

    Raises:
        ConfigError: The source is unknown or cannot be read.
    """
    kind, _, target = source.partition(":")
    if kind == "env" and target:
        value = os.environ.get(target)
        if value is None:
            raise ConfigError(f"Environment variable '{target}' is not set (source: {source})")
        return value

    if kind == "file" and target:
        path = Path(target).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for credentials: stdin is not a TTY (source: prompt)")
        return getpass.getpass("Enter credential: ")

    raise ConfigError(f"Unknown credential source format: {source}")
