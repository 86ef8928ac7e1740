"""Typer application and CLI entry point for copctl.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``auth``, ``objects``, ``types``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~copctl.exceptions.CopError` exits with the error's code; any
other exception is written to a crash log under the data directory.

See Also:
    :mod:`copctl.config`: Session resolution from flags, env, and files.
    :mod:`copctl.output`: Output and logging initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from copctl import __version__
from copctl.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED


app = typer.Typer(
    name="copctl",
    help="Log in to the observability platform and manage knowledge-store objects.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

from copctl.commands.auth import auth_app  # noqa: E402
from copctl.commands.objects import objects_app, types_app  # noqa: E402

app.add_typer(auth_app, name="auth", help="Authentication.")
app.add_typer(objects_app, name="objects", help="Knowledge-store objects.")
app.add_typer(types_app, name="types", help="Knowledge-store types.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"copctl {__version__}")
        raise typer.Exit()


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
    url: Optional[str] = typer.Option(
        None, "--url", help="Platform base URL (overrides COP_URL)."
    ),
    tenant: Optional[str] = typer.Option(
        None, "--tenant", help="Tenant id (overrides COP_TENANT)."
    ),
    auth_method: Optional[str] = typer.Option(
        None,
        "--auth-method",
        help="oauth, service-principal or headless (overrides COP_AUTH_METHOD).",
    ),
    secret_file: Optional[str] = typer.Option(
        None,
        "--secret-file",
        help="Service-principal secrets file (overrides COP_SECRET_FILE).",
    ),
    username: Optional[str] = typer.Option(
        None, "--username", help="Headless login user (overrides COP_USERNAME)."
    ),
    password: Optional[str] = typer.Option(
        None, "--password", help="Headless login password (overrides COP_PASSWORD)."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show progress log messages."
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Show debug log messages."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~copctl.output.OutputManager` and the
    ``copctl`` logger from CLI flags, and stores the connection overrides
    in the Typer context for
    :func:`~copctl.commands.auth.authenticated_session`.
    """
    from copctl.output import OutputManager, configure_logging, set_output

    set_output(OutputManager(no_color=no_color, quiet=quiet))

    level = logging.WARNING
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    configure_logging(level, no_color=no_color)

    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "url": url,
        "tenant": tenant,
        "auth_method": auth_method,
        "secret_file": secret_file,
        "username": username,
        "password": password,
    }


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from copctl.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``copctl`` console script.

    Unhandled :class:`~copctl.exceptions.CopError` instances cause a clean
    exit with the error's ``exit_code``. All other exceptions produce a
    crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        from copctl.exceptions import CopError
        from copctl.output import error

        if isinstance(exc, CopError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
