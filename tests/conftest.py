"""Shared test fixtures for copctl.

Provides isolated config environments, sample sessions and secrets files,
loopback redirect URIs, and output state management. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import json
import logging
import socket
from pathlib import Path

import pytest

from copctl.models import AuthMethod, ClientSession
from copctl.output import OutputManager, reset_output, set_output


SAMPLE_URL = "https://tenant.example.com"
SAMPLE_TENANT = "0eb4e853-34fb-4f77-b3fc-b9cd3b462366"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_logging_between_tests() -> None:
    """Undo :func:`copctl.output.configure_logging` after every test.

    CLI tests install a RichHandler bound to the runner's stderr and stop
    propagation, which would hide records from ``caplog`` in later tests.
    """
    yield
    logger = logging.getLogger("copctl")
    for handler in list(logger.handlers):
        if getattr(handler, "_copctl_handler", False):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config. Clears all COP_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "URL",
        "COP_URL",
        "COP_TENANT",
        "COP_AUTH_METHOD",
        "COP_USERNAME",
        "COP_PASSWORD",
        "COP_SECRET_FILE",
        "COP_REFRESH_TOKEN",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def secrets_file(tmp_path: Path) -> Path:
    """A valid service-principal secrets file."""
    path = tmp_path / "secrets.json"
    path.write_text(json.dumps({"Client ID": "srv_1a2b3c", "Secret": "s3cr3t"}))
    return path


@pytest.fixture
def oauth_session() -> ClientSession:
    """An unauthenticated OAuth session with no refresh token."""
    return ClientSession(url=SAMPLE_URL, tenant=SAMPLE_TENANT, auth_method=AuthMethod.OAUTH)


@pytest.fixture
def sp_session(secrets_file: Path) -> ClientSession:
    """An unauthenticated service-principal session."""
    return ClientSession(
        url=SAMPLE_URL,
        tenant=SAMPLE_TENANT,
        auth_method=AuthMethod.SERVICE_PRINCIPAL,
        secret_file=str(secrets_file),
    )


# ---------------------------------------------------------------------------
# Loopback fixtures
# ---------------------------------------------------------------------------


def find_free_port() -> int:
    """Find a free TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def redirect_uri() -> str:
    """A loopback redirect URI on a currently free port."""
    return f"http://127.0.0.1:{find_free_port()}/callback"


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless output manager for the test."""
    output = OutputManager(no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
