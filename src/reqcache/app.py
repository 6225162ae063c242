"""Typer application and CLI entry point for reqcache.

Registers the built-in commands (``get``, ``preload``, ``request``,
``cache``, ``config``, ``profile``) on the root app.  :func:`main` is the
console-script entry point declared in ``pyproject.toml``: it maps
:class:`~reqcache.exceptions.ReqcacheError` to the error's exit code and
writes a crash log for anything unexpected.

See Also:
    :mod:`reqcache.session`: how a command builds its engine.
    :mod:`reqcache.output`: output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer
from rich.logging import RichHandler

from reqcache import __version__
from reqcache.commands.cache import cache_app
from reqcache.commands.config import config_app
from reqcache.commands.fetch import get_command, preload_command, request_command
from reqcache.commands.profile import profile_app
from reqcache.config import load_global_config
from reqcache.exceptions import ConfigError
from reqcache.exit_codes import EXIT_GENERIC_FAILURE
from reqcache.output import OutputFormat, OutputManager, set_output

app = typer.Typer(
    name="reqcache",
    help="Read API resources through a client-side request cache.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("get")(get_command)
app.command("preload")(preload_command)
app.command("request")(request_command)
app.add_typer(cache_app, name="cache", help="Inspect and invalidate the persisted snapshot.")
app.add_typer(config_app, name="config", help="Configuration management.")
app.add_typer(profile_app, name="profile", help="Profile management.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"reqcache {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, output: OutputManager) -> None:
    """Send library log records to stderr through Rich; DEBUG with ``--verbose``."""
    root = logging.getLogger("reqcache")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = RichHandler(console=output.stderr_console, show_path=False, markup=False)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Profile name to use."),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Override the profile's base URL."),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~reqcache.output.OutputManager`, routes
    library logging through it, and stores shared options in ``ctx.obj``.
    """
    output = OutputManager(
        format=_resolve_format(json_output, plain_output),
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    _configure_logging(verbose, output)

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["base_url"] = base_url
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _resolve_format(json_output: bool, plain_output: bool) -> OutputFormat:
    """Pick the output format: CLI flags first, then ``output.format`` from config."""
    if json_output:
        return OutputFormat.JSON
    if plain_output:
        return OutputFormat.PLAIN
    try:
        configured = load_global_config().output.format
    except ConfigError:
        # The command that loads the config reports the broken file.
        return OutputFormat.AUTO
    return OutputFormat(configured)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Write the current traceback under the data directory and return its path."""
    from reqcache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """Console-script entry point.

    :class:`~reqcache.exceptions.ReqcacheError` exits with the error's
    ``exit_code``; any other exception writes a crash log and exits with
    :data:`~reqcache.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    from reqcache.exceptions import ReqcacheError
    from reqcache.output import error

    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except ReqcacheError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception:
        log_path = _write_crash_log()
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
