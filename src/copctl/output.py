"""Output formatting and logging setup with strict stdout/stderr discipline.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stdout** -- primary data only (knowledge-store objects, types, tokens).
  Provisioning tools capture and parse this stream, so nothing else may
  be written to it -- not even the chatter of a browser launcher.
* **stderr** -- all diagnostics (status, warnings, errors, suggestions,
  log records).
* **Colour control** -- respects ``NO_COLOR``, ``TERM=dumb``, and the
  ``--no-color`` CLI flag.

The module exposes three layers:

1. :class:`OutputManager` -- a stateful object holding Rich consoles and
   the quiet/colour flags. Created once in
   :func:`~copctl.app.main_callback` and installed via :func:`set_output`.
2. Module-level convenience functions (:func:`info`, :func:`error`,
   :func:`print_json`, etc.) that delegate to the global manager.
3. :func:`configure_logging` -- routes the ``copctl`` logger hierarchy to
   stderr through :class:`rich.logging.RichHandler`.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "copctl"


class OutputManager:
    """Central manager for all CLI output with stdout/stderr discipline.

    Args:
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential informational messages on stderr.
    """

    def __init__(self, no_color: bool = False, quiet: bool = False) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._stdout = Console(file=sys.stdout, no_color=self._no_color)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def no_color(self) -> bool:
        """Whether colour output is disabled."""
        return self._no_color

    @property
    def is_quiet(self) -> bool:
        """Whether quiet mode is enabled."""
        return self._quiet

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def print_json(self, data: Any) -> None:
        """Write a JSON document to stdout.

        *data* may be raw response bytes, a string, or any
        JSON-serialisable value. Bytes and strings that parse as JSON are
        re-indented; anything else is written verbatim.

        Args:
            data: The payload to print.
        """
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                self.print_data(data)
                return
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False))

    def print_data(self, text: str) -> None:
        """Print raw text to stdout.

        Args:
            text: The string to write. A trailing newline is appended.
        """
        print(text, file=sys.stdout, flush=True)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Print an informational message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, "{}")

    def success(self, message: str) -> None:
        """Print a green success message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, "[green]{}[/green]")

    def warning(self, message: str) -> None:
        """Print a yellow warning to stderr. NOT suppressed by ``--quiet``."""
        self._emit(message, "[yellow]Warning:[/yellow] {}", plain_prefix="Warning: ")

    def error(self, message: str) -> None:
        """Print a bold-red error to stderr. Never suppressed."""
        self._emit(message, "[bold red]Error:[/bold red] {}", plain_prefix="Error: ")

    def suggest(self, message: str) -> None:
        """Print a dimmed next-step suggestion to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(f"→ {message}", "[dim]{}[/dim]")

    def _emit(self, message: str, markup: str, plain_prefix: str = "") -> None:
        if self._no_color:
            print(f"{plain_prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup.format(message), highlight=False)


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _should_disable_color() -> bool:
    """Check if color should be disabled per clig.dev.

    Returns True when NO_COLOR env var is set (any value) or TERM=dumb.
    """
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


def configure_logging(level: int = logging.WARNING, no_color: bool = False) -> None:
    """Route ``copctl`` log records to stderr through Rich.

    Replaces any handler previously installed by this function, so it is
    safe to call once per CLI invocation (and repeatedly in tests).

    Args:
        level: Minimum level to emit.
        no_color: Disable colour in log output.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_copctl_handler", False):
            logger.removeHandler(handler)

    console = Console(file=sys.stderr, stderr=True, no_color=no_color or _should_disable_color())
    handler = RichHandler(
        console=console,
        show_path=False,
        show_time=False,
        markup=False,
        rich_tracebacks=False,
    )
    handler._copctl_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


# ------------------------------------------------------------------ #
# Global output instance (set during app startup)
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global :class:`OutputManager` instance."""
    global _output
    _output = output


def reset_output() -> None:
    """Reset the global :class:`OutputManager` to ``None``.

    Primarily useful in test suites to ensure a clean state between tests.
    """
    global _output
    _output = None


# ------------------------------------------------------------------ #
# Convenience functions that use the global instance
# ------------------------------------------------------------------ #


def print_json(data: Any) -> None:
    """Write a JSON document to stdout via the global :class:`OutputManager`."""
    get_output().print_json(data)


def info(message: str) -> None:
    """Print an informational message to stderr."""
    get_output().info(message)


def success(message: str) -> None:
    """Print a success message to stderr."""
    get_output().success(message)


def warning(message: str) -> None:
    """Print a warning to stderr."""
    get_output().warning(message)


def error(message: str) -> None:
    """Print an error to stderr."""
    get_output().error(message)


def suggest(message: str) -> None:
    """Print a next-step suggestion to stderr."""
    get_output().suggest(message)
