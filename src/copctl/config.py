"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for copctl:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.copctl/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Config files** -- a user-wide ``config.json`` and an optional
  project-local ``./copctl.json``, both deserialised into
  :class:`~copctl.models.FileConfig`.
* **Session resolution** -- :func:`resolve_session` merges CLI flags,
  environment variables, the project file, and the user file into a
  :class:`~copctl.models.ClientSession`, then validates that the selected
  auth method has what it needs.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from copctl.exceptions import ConfigError
from copctl.models import AuthMethod, ClientSession, FileConfig

_APP_NAME = "copctl"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "copctl.json"

# Environment variables, highest priority first when several map to one field.
_ENV_VARS: dict[str, tuple[str, ...]] = {
    "url": ("COP_URL", "URL"),
    "tenant": ("COP_TENANT",),
    "auth_method": ("COP_AUTH_METHOD",),
    "username": ("COP_USERNAME",),
    "password": ("COP_PASSWORD",),
    "secret_file": ("COP_SECRET_FILE",),
    "refresh_token": ("COP_REFRESH_TOKEN",),
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/copctl/`` (default ``~/.config/copctl/``).
    On macOS/Windows: ``~/.copctl/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/copctl/`` (default ``~/.local/share/copctl/``).
    On macOS/Windows: ``~/.copctl/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* through a sibling temp file and ``os.replace``.

    Readers see the old file or the new one, never a partial write. The
    temp file is removed if anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_name: Optional[str] = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


# --- Config files ---


def user_config_path() -> Path:
    """Path to the user-wide config file."""
    return get_config_dir() / _CONFIG_FILENAME


def project_config_path() -> Path:
    """Path to the project-local config file in the working directory."""
    return Path.cwd() / _PROJECT_CONFIG_FILENAME


def load_file_config(path: Path) -> FileConfig:
    """Load a JSON config file.

    Args:
        path: File to read.

    Returns:
        The deserialised :class:`~copctl.models.FileConfig`, or an empty
        one if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            validation (for example an unknown ``auth_method``).
    """
    if not path.is_file():
        return FileConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return FileConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_user_config(config: FileConfig) -> Path:
    """Write the user-wide config file. Unset fields are left out.

    Raises:
        ConfigError: If the file cannot be written.
    """
    path = user_config_path()
    data = config.model_dump(mode="json", exclude_none=True)
    try:
        _atomic_write(path, json.dumps(data, indent=2) + "\n")
    except OSError as exc:
        raise ConfigError(f"Failed to save config to {path}: {exc}") from exc
    return path


def remember_connection(session: ClientSession) -> Path:
    """Store *session*'s connection settings as the user defaults.

    Writes ``url``, ``tenant``, ``auth_method`` and ``secret_file`` into
    the user config, keeping any other keys already there. Usernames,
    passwords and tokens are never written.

    Returns:
        The path of the user config file.

    Raises:
        ConfigError: If the existing file is invalid or cannot be replaced.
    """
    current = load_file_config(user_config_path())
    update: dict[str, Any] = {"auth_method": session.auth_method}
    for field in ("url", "tenant", "secret_file"):
        value = getattr(session, field)
        if value:
            update[field] = value
    return save_user_config(current.model_copy(update=update))


# --- Precedence resolution ---


def _env_values() -> dict[str, str]:
    """Collect non-empty settings from the ``COP_*`` environment variables."""
    values: dict[str, str] = {}
    for field, names in _ENV_VARS.items():
        for name in names:
            value = os.environ.get(name)
            if value:
                values[field] = value
                break
    return values


def resolve_session(
    overrides: Optional[dict[str, Any]] = None,
    validate: bool = True,
) -> ClientSession:
    """Build a :class:`~copctl.models.ClientSession` with full precedence chain.

    Precedence (high to low):
        1. *overrides* (CLI flags; ``None`` values are ignored)
        2. Environment variables (``COP_URL``, ``COP_TENANT``,
           ``COP_AUTH_METHOD``, ``COP_USERNAME``, ``COP_PASSWORD``,
           ``COP_SECRET_FILE``, ``COP_REFRESH_TOKEN``)
        3. Project config (``./copctl.json``)
        4. User config (``~/.config/copctl/config.json``)
        5. Defaults

    Args:
        overrides: Explicit values, typically from CLI options.
        validate: When ``True``, run :func:`validate_session` on the result.

    Returns:
        The resolved, unauthenticated session.

    Raises:
        ConfigError: If a config file is invalid, the auth method is
            missing or unknown, or required settings for the method are
            absent.
    """
    merged: dict[str, Any] = {}
    # 4. User config, 3. project config
    for path in (user_config_path(), project_config_path()):
        file_cfg = load_file_config(path)
        merged.update(file_cfg.model_dump(exclude_none=True))
    # 2. Environment
    merged.update(_env_values())
    # 1. CLI flags
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    method = merged.get("auth_method")
    if not method:
        raise ConfigError(
            "Missing auth method: set COP_AUTH_METHOD, the 'auth_method' config "
            "key, or --auth-method"
        )
    try:
        merged["auth_method"] = AuthMethod(method)
    except ValueError:
        allowed = ", ".join(m.value for m in AuthMethod)
        raise ConfigError(
            f"Unknown auth method {method!r}. Expected one of: {allowed}"
        ) from None

    try:
        session = ClientSession.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid session settings: {exc}") from exc

    if validate:
        problems = validate_session(session)
        if problems:
            raise ConfigError("; ".join(problems))
    return session


def validate_session(session: ClientSession) -> list[str]:
    """Check that *session* carries the settings its auth method needs.

    Args:
        session: The session to check.

    Returns:
        A list of human-readable problems. Empty if valid.
    """
    problems: list[str] = []
    method = session.auth_method
    if method in (AuthMethod.OAUTH, AuthMethod.SERVICE_PRINCIPAL):
        if not session.url:
            problems.append("Missing API url: set COP_URL or the 'url' config key")
        if not session.tenant:
            problems.append("Missing tenant: set COP_TENANT or the 'tenant' config key")
    if method == AuthMethod.SERVICE_PRINCIPAL and not session.secret_file:
        problems.append(
            "Missing secrets file: set COP_SECRET_FILE or the 'secret_file' config key"
        )
    if method == AuthMethod.HEADLESS:
        if not session.username:
            problems.append("Missing username: set COP_USERNAME or the 'username' config key")
        if not session.password:
            problems.append("Missing password: set COP_PASSWORD or the 'password' config key")
    return problems
