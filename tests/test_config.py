"""Tests for reqcache.config -- XDG paths, atomic writes, profiles, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from reqcache.config import (
    _atomic_write,
    delete_profile,
    get_cache_dir,
    get_config_dir,
    get_data_dir,
    get_profiles_dir,
    list_profiles,
    load_global_config,
    load_profile,
    load_project_config,
    profile_exists,
    resolve_config,
    resolve_credential,
    save_global_config,
    save_profile,
)
from reqcache.exceptions import ConfigError
from reqcache.models import AuthConfig, CacheConfig, GlobalConfig, Profile


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _make_profile(name: str = "test", base_url: str = "https://api.example.com") -> Profile:
    return Profile(name=name, base_url=base_url)


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_xdg_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("reqcache.config._is_xdg_platform", lambda: True)
        for var in ("XDG_CONFIG_HOME", "XDG_CACHE_HOME", "XDG_DATA_HOME"):
            monkeypatch.delenv(var, raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".config" / "reqcache"
        assert get_cache_dir() == tmp_path / ".cache" / "reqcache"
        assert get_data_dir() == tmp_path / ".local" / "share" / "reqcache"

    def test_xdg_env_overrides(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("reqcache.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xc"))

        result = get_cache_dir()
        assert result == tmp_path / "xc" / "reqcache"
        assert result.is_dir()

    def test_fallback_layout(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("reqcache.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".reqcache"
        assert get_cache_dir() == tmp_path / ".reqcache" / "cache"
        assert get_data_dir() == tmp_path / ".reqcache" / "logs"

    def test_profiles_dir_inside_config_dir(self, isolated_config: Path) -> None:
        assert get_profiles_dir() == get_config_dir() / "profiles"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_writes_and_overwrites(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "file.json"
        _atomic_write(target, "one")
        _atomic_write(target, "two")
        assert target.read_text() == "two"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        _atomic_write(tmp_path / "a.json", "{}")
        assert [p.name for p in tmp_path.iterdir()] == ["a.json"]

    def test_temp_file_removed_on_error(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom(src: str, dst: Path) -> None:
            raise OSError("disk full")

        monkeypatch.setattr("reqcache.config.os.replace", boom)
        with pytest.raises(OSError, match="disk full"):
            _atomic_write(tmp_path / "a.json", "{}")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_global_config()
        assert config == GlobalConfig()
        assert config.cache.grace_period_seconds == 180
        assert config.cache.speculative_ttl_seconds == 180

    def test_roundtrip(self, isolated_config: Path) -> None:
        config = GlobalConfig(
            default_profile="prod",
            cache=CacheConfig(grace_period_seconds=30, speculative_ttl_seconds=None, persist=False),
        )
        save_global_config(config)
        assert load_global_config() == config

    def test_invalid_json(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_invalid_schema(self, isolated_config: Path) -> None:
        _write_json(get_config_dir() / "config.json", {"cache": {"grace_period_seconds": "soon"}})
        with pytest.raises(ConfigError):
            load_global_config()

    def test_unknown_output_format(self, isolated_config: Path) -> None:
        _write_json(get_config_dir() / "config.json", {"output": {"format": "yaml"}})
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestProfiles:
    def test_crud(self, isolated_config: Path) -> None:
        assert list_profiles() == []
        save_profile(_make_profile("b"))
        save_profile(_make_profile("a"))

        assert list_profiles() == ["a", "b"]
        assert profile_exists("a")
        assert load_profile("a").base_url == "https://api.example.com"

        delete_profile("a")
        assert not profile_exists("a")

    def test_auth_roundtrip(self, isolated_config: Path) -> None:
        profile = _make_profile()
        profile.auth = AuthConfig(type="api_key", header="X-Key", source="env:KEY")
        save_profile(profile)
        assert load_profile("test").auth == profile.auth

    def test_unknown_keys_survive(self, isolated_config: Path) -> None:
        _write_json(
            get_profiles_dir() / "x.json",
            {"name": "x", "base_url": "http://h", "notes": "hand edited"},
        )
        save_profile(load_profile("x"))
        data = json.loads((get_profiles_dir() / "x.json").read_text())
        assert data["notes"] == "hand edited"

    def test_missing_profile(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_profile("nope")
        with pytest.raises(ConfigError, match="not found"):
            delete_profile("nope")

    def test_profile_without_base_url(self, isolated_config: Path) -> None:
        _write_json(get_profiles_dir() / "bad.json", {"name": "bad"})
        with pytest.raises(ConfigError, match="Invalid profile"):
            load_profile("bad")


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    @pytest.fixture(autouse=True)
    def _profiles(self, isolated_config: Path) -> None:
        save_profile(_make_profile("global", "http://global"))
        save_profile(_make_profile("project", "http://project"))
        save_profile(_make_profile("env", "http://env"))
        save_global_config(GlobalConfig(default_profile="global"))

    def test_global_default(self) -> None:
        _, profile = resolve_config()
        assert profile.name == "global"

    def test_project_overrides_global(self) -> None:
        _write_json(Path.cwd() / "reqcache.json", {"default_profile": "project"})
        assert load_project_config() == {"default_profile": "project"}
        _, profile = resolve_config()
        assert profile.name == "project"

    def test_env_overrides_project(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(Path.cwd() / "reqcache.json", {"default_profile": "project"})
        monkeypatch.setenv("REQCACHE_PROFILE", "env")
        _, profile = resolve_config()
        assert profile.name == "env"

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REQCACHE_PROFILE", "env")
        _, profile = resolve_config(cli_profile="project")
        assert profile.name == "project"

    def test_base_url_precedence(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REQCACHE_BASE_URL", "http://from-env")
        _, profile = resolve_config()
        assert profile.base_url == "http://from-env"
        _, profile = resolve_config(cli_base_url="http://from-cli")
        assert profile.base_url == "http://from-cli"

    def test_profile_cache_overrides(self) -> None:
        profile = _make_profile("global", "http://global")
        profile.cache = {"grace_period_seconds": 5, "persist": False}
        save_profile(profile)

        config, _ = resolve_config()
        assert config.cache.grace_period_seconds == 5
        assert config.cache.persist is False
        assert config.cache.snapshot_ttl_seconds == 300
        assert load_global_config().cache.grace_period_seconds == 180

    def test_project_cache_overrides_profile(self) -> None:
        profile = _make_profile("global", "http://global")
        profile.cache = {"grace_period_seconds": 5}
        save_profile(profile)
        _write_json(Path.cwd() / "reqcache.json", {"cache": {"grace_period_seconds": 1}})

        config, _ = resolve_config()
        assert config.cache.grace_period_seconds == 1

    def test_unknown_cache_override(self) -> None:
        profile = _make_profile("global", "http://global")
        profile.cache = {"grace": 5}
        save_profile(profile)
        with pytest.raises(ConfigError, match="Unknown cache setting"):
            resolve_config()

    def test_invalid_cache_override(self) -> None:
        _write_json(Path.cwd() / "reqcache.json", {"cache": {"persist": "sometimes"}})
        with pytest.raises(ConfigError, match="Invalid cache setting in project config"):
            resolve_config()

    def test_no_auto_select_with_several_profiles(self) -> None:
        save_global_config(GlobalConfig())
        _, profile = resolve_config()
        assert profile is None

    def test_invalid_project_config(self) -> None:
        (Path.cwd() / "reqcache.json").write_text("{oops")
        with pytest.raises(ConfigError, match="Invalid project config"):
            resolve_config()


# ---------------------------------------------------------------------------
# Credential sources
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_TOKEN", "abc")
        assert resolve_credential("env:MY_TOKEN") == "abc"

    def test_env_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MY_TOKEN", raising=False)
        with pytest.raises(ConfigError, match="MY_TOKEN"):
            resolve_credential("env:MY_TOKEN")

    def test_file(self, tmp_path: Path) -> None:
        secret = tmp_path / "token"
        secret.write_text("  xyz\n")
        assert resolve_credential(f"file:{secret}") == "xyz"

    def test_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential(f"file:{tmp_path / 'none'}")

    def test_prompt_requires_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: False)
        with pytest.raises(ConfigError, match="not a TTY"):
            resolve_credential("prompt")

    def test_prompt_with_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        monkeypatch.setattr("reqcache.config.getpass.getpass", lambda prompt: "typed")
        assert resolve_credential("prompt") == "typed"

    def test_unknown_source(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("vault:x")
