"""Auth commands -- log in to the platform.

Provides the ``copctl auth`` sub-command group. Connection settings come
from the global options, the ``COP_*`` environment variables, and the
config files (see :func:`copctl.config.resolve_session`).

Typical workflow::

    copctl --tenant 0eb4... --url https://tenant.example.com auth login
    COP_AUTH_METHOD=service-principal copctl auth login --show-token
"""

from __future__ import annotations

from typing import Any

import typer

from copctl.exceptions import CopError
from copctl.models import AuthMethod, ClientSession
from copctl.output import error, get_output, info, print_json, success, suggest


auth_app = typer.Typer(no_args_is_help=True)


def _overrides(ctx: typer.Context) -> dict[str, Any]:
    obj = ctx.find_root().obj or {}
    return dict(obj.get("overrides") or {})


def authenticated_session(ctx: typer.Context) -> ClientSession:
    """Resolve the session from configuration and log in.

    Shared by every command that talks to the API.

    Raises:
        typer.Exit: With the error's exit code if configuration or login fails.
    """
    from copctl.auth import create_default_manager
    from copctl.config import resolve_session

    try:
        session = resolve_session(_overrides(ctx))
        return create_default_manager().login(session)
    except CopError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    show_token: bool = typer.Option(
        False, "--show-token", help="Print the issued tokens to stdout as JSON."
    ),
    save: bool = typer.Option(
        False,
        "--save",
        help="Remember url, tenant, auth method and secrets file as user defaults.",
    ),
) -> None:
    """Authenticate with the configured auth method.

    For ``oauth`` this opens a browser window and waits for the redirect
    to ``http://127.0.0.1:3101/callback``; for ``service-principal`` it
    exchanges the secrets file for a token.

    Args:
        ctx: Typer invocation context carrying the global connection options.
        show_token: Print ``access_token`` (and ``refresh_token`` when
            issued) to stdout.
        save: After a successful login, write the connection settings to
            the user config file. Tokens are never saved.

    Raises:
        typer.Exit: With the error's exit code if login fails.

    Example::

        copctl auth login --show-token
        copctl --url https://tenant.example.com --tenant 0eb4... auth login --save
    """
    session = authenticated_session(ctx)
    success(f'Logged in to tenant "{session.tenant}" using {session.auth_method.value}.')
    if save:
        from copctl.config import remember_connection

        try:
            path = remember_connection(session)
        except CopError as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None
        info(f"Saved connection settings to {path}")
    if show_token:
        tokens = {"access_token": session.token}
        if session.refresh_token:
            tokens["refresh_token"] = session.refresh_token
        print_json(tokens)
    elif session.refresh_token:
        suggest("Reuse the refresh token with COP_REFRESH_TOKEN (see --show-token).")


@auth_app.command("methods")
def auth_methods() -> None:
    """List the supported authentication methods.

    Example::

        copctl auth methods
    """
    from copctl.auth import create_default_manager

    output = get_output()
    registered = create_default_manager().list_methods()
    info("Supported auth methods:")
    for method in AuthMethod:
        if method is AuthMethod.HEADLESS:
            output.print_data(f"{method.value}\t(not implemented)")
        elif method in registered:
            output.print_data(method.value)
