"""Open the user's default browser without polluting stdout.

Launch helpers such as ``xdg-open`` like to chat ("Opening in existing
browser session."). copctl's stdout may be captured and parsed as JSON, so
:class:`BrowserLauncher` runs the platform launcher with its output sent to
temporary files and forwards whatever it printed to an injected logger at
INFO level. Only the launcher itself is waited for; a browser it starts
inherits the files, not copctl's streams. The process-wide ``sys.stdout``
is never reassigned.

Launch failure is not fatal to a login: callers log the URL so the user can
open it by hand.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
import tempfile
from typing import IO, Optional

from copctl.exceptions import BrowserLaunchError

_DEFAULT_LAUNCH_TIMEOUT = 10.0


def _launch_commands(uri: str) -> list[list[str]]:
    """Return candidate launch commands for the current platform, best first."""
    system = platform.system()
    if system == "Darwin":
        return [["open", uri]]
    if system == "Windows":
        return [["rundll32", "url.dll,FileProtocolHandler", uri]]
    return [["xdg-open", uri], ["wslview", uri]]


class BrowserLauncher:
    """Open URLs in the system browser, routing launcher output to a logger.

    Args:
        logger: Sink for launcher diagnostics. Defaults to this module's
            logger.
        launch_timeout: Seconds to wait for a launch command to return
            before assuming it handed off to a running browser.

    Example::

        launcher = BrowserLauncher(logging.getLogger("copctl.login"))
        try:
            launcher.open(auth_url)
        except BrowserLaunchError:
            print(f"Open this URL to log in: {auth_url}", file=sys.stderr)
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        launch_timeout: float = _DEFAULT_LAUNCH_TIMEOUT,
    ) -> None:
        self._log = logger or logging.getLogger(__name__)
        self._launch_timeout = launch_timeout

    def open(self, uri: str) -> None:
        """Open *uri* in the default browser.

        Tries each platform launch command in turn.

        Raises:
            BrowserLaunchError: If no launch command is installed or every
                one of them failed.
        """
        failures: list[str] = []
        commands = _launch_commands(uri)
        for command in commands:
            if shutil.which(command[0]) is None:
                self._log.debug("Browser launcher %s not found", command[0])
                continue
            try:
                if self._run(command):
                    return
                failures.append(f"{command[0]} exited with an error")
            except OSError as exc:
                failures.append(f"{command[0]}: {exc}")

        if not failures:
            tried = ", ".join(command[0] for command in commands)
            failures.append(f"no launch command found (tried {tried})")
        raise BrowserLaunchError("Failed to launch a browser: " + "; ".join(failures))

    def _run(self, command: list[str]) -> bool:
        """Run one launch command, logging its output. Returns success."""
        with tempfile.TemporaryFile() as out, tempfile.TemporaryFile() as err:
            proc = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=out,
                stderr=err,
            )
            try:
                returncode: Optional[int] = proc.wait(timeout=self._launch_timeout)
            except subprocess.TimeoutExpired:
                returncode = None
            self._log_output(out, err)

        if returncode is None:
            self._log.debug(
                "Browser launcher %s still running after %gs; assuming it opened the browser",
                command[0],
                self._launch_timeout,
            )
            return True
        if returncode != 0:
            self._log.info("Browser launcher %s exited with status %d", command[0], returncode)
            return False
        return True

    def _log_output(self, *files: IO[bytes]) -> None:
        parts = []
        for fh in files:
            fh.seek(0)
            text = fh.read().decode("utf-8", errors="replace").strip()
            if text:
                parts.append(text)
        if parts:
            self._log.info("Browser launch: %s", "\n".join(parts))


def open_browser(uri: str, logger: Optional[logging.Logger] = None) -> None:
    """Open *uri* with a default :class:`BrowserLauncher`.

    Raises:
        BrowserLaunchError: If no launch mechanism succeeded.
    """
    BrowserLauncher(logger).open(uri)
