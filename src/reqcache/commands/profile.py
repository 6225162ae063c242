"""Profile commands -- manage the API targets reqcache talks to.

A profile names a base URL plus request and credential settings.  The
snapshot of each profile is stored separately, so two profiles never share
cached resources.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from reqcache.output import format_response, info, print_table, success, suggest

profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    base_url: str = typer.Option(..., "--base-url", "-u", help="API base URL."),
    auth_source: Optional[str] = typer.Option(
        None, "--auth-source", help="Credential source: env:VAR, file:/path, prompt."
    ),
    auth_type: str = typer.Option("bearer", "--auth-type", help="bearer, api_key or header."),
    auth_header: str = typer.Option(
        "Authorization", "--auth-header", help="Header carrying the credential."
    ),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Extra header as Name:Value (repeatable)."
    ),
    timeout: float = typer.Option(30, "--timeout", help="Request timeout in seconds."),
    use: bool = typer.Option(
        False, "--use", help="Pin this profile in ./reqcache.json."
    ),
) -> None:
    """Create or overwrite a profile.

    Example::

        reqcache profile add github -u https://api.github.com --auth-source env:GITHUB_TOKEN
    """
    from reqcache.config import profile_exists, save_profile
    from reqcache.exceptions import InvalidUsageError
    from reqcache.models import AuthConfig, Profile, RequestConfig

    headers: dict[str, str] = {}
    for item in header or []:
        field, sep, value = item.partition(":")
        if not sep:
            raise InvalidUsageError(f"Expected Name:Value, got: {item}")
        headers[field.strip()] = value.strip()

    auth = None
    if auth_source is not None:
        auth = AuthConfig(type=auth_type, header=auth_header, source=auth_source)

    if profile_exists(name):
        info(f'Profile "{name}" already exists and will be overwritten.')

    save_profile(
        Profile(
            name=name,
            base_url=base_url,
            auth=auth,
            request=RequestConfig(timeout=timeout, headers=headers),
        )
    )
    if use:
        Path("reqcache.json").write_text(json.dumps({"default_profile": name}, indent=2) + "\n")
    success(f'Profile "{name}" saved.')
    suggest(f"Try it: reqcache --profile {name} get /")


@profile_app.command("list")
def profile_list() -> None:
    """List saved profiles."""
    from reqcache.config import list_profiles, load_profile

    names = list_profiles()
    if not names:
        info("No profiles yet.")
        suggest("Create one: reqcache profile add NAME --base-url URL")
        return
    rows = [[name, load_profile(name).base_url] for name in names]
    print_table(["Name", "Base URL"], rows, title="Profiles")


@profile_app.command("show")
def profile_show(name: str = typer.Argument(help="Profile name.")) -> None:
    """Print a profile as JSON."""
    from reqcache.config import load_profile

    format_response(load_profile(name).model_dump(mode="json"))


@profile_app.command("remove")
def profile_remove(
    ctx: typer.Context,
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Delete a profile.  Asks for confirmation unless ``--force``."""
    from reqcache.config import delete_profile

    force = (ctx.obj or {}).get("force", False)
    if not force and not typer.confirm(f'Delete profile "{name}"?'):
        info("Cancelled.")
        raise typer.Exit()
    delete_profile(name)
    success(f'Profile "{name}" removed.')
