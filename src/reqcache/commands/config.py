"""Config commands -- view and modify the global configuration.

Settings live in ``config.json`` in the reqcache config directory and set
defaults such as the engine's grace period and the snapshot lifetime.
"""

from __future__ import annotations

from typing import Any

import typer

from reqcache.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)


def _coerce(current: Any, value: str) -> Any:
    """Coerce *value* to the type of the field's *current* value.

    Raises:
        ValueError: The value cannot be converted.
    """
    if value.lower() in ("null", "none"):
        return None
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


@config_app.command("show")
def config_show() -> None:
    """Show the current global configuration."""
    from reqcache.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key in dot notation, e.g. 'cache.grace_period_seconds'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Example::

        reqcache config set default_profile github
        reqcache config set cache.grace_period_seconds 60
        reqcache config set cache.speculative_ttl_seconds null
    """
    from reqcache.config import load_global_config, save_global_config
    from reqcache.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    *parents, final_key = key.split(".")
    target = data
    for part in parents:
        if not isinstance(target.get(part), dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[part]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    try:
        target[final_key] = _coerce(target[final_key], value)
        new_config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Invalid value for {key}: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {target[final_key]}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.  Asks for confirmation unless ``--force``."""
    from reqcache.config import save_global_config
    from reqcache.models import GlobalConfig

    force = (ctx.obj or {}).get("force", False)
    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
