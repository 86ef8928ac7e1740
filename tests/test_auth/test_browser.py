"""Tests for the browser launcher."""

from __future__ import annotations

import logging
import os
import stat
import subprocess
import sys
import time
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from copctl.auth.browser import BrowserLauncher, _launch_commands, open_browser
from copctl.exceptions import BrowserLaunchError, LocalResourceError

URI = "https://tenant.example.com/auth/t/default/oauth2/authorize?state=x"


def _popen(returncode: int = 0, out: str = "", err: str = "") -> Any:
    """Build a Popen replacement that writes to the files it is handed."""

    def factory(command: list[str], **kwargs: Any) -> MagicMock:
        kwargs["stdout"].write(out.encode())
        kwargs["stderr"].write(err.encode())
        proc = MagicMock()
        proc.wait.return_value = returncode
        return proc

    return factory


@pytest.fixture
def linux():
    with patch("copctl.auth.browser.platform.system", return_value="Linux"):
        yield


class TestLaunchCommands:
    def test_darwin(self) -> None:
        with patch("copctl.auth.browser.platform.system", return_value="Darwin"):
            assert _launch_commands(URI) == [["open", URI]]

    def test_windows(self) -> None:
        with patch("copctl.auth.browser.platform.system", return_value="Windows"):
            assert _launch_commands(URI) == [["rundll32", "url.dll,FileProtocolHandler", URI]]

    def test_linux_prefers_xdg_open(self, linux: None) -> None:
        commands = _launch_commands(URI)
        assert commands[0] == ["xdg-open", URI]


class TestBrowserLauncher:
    def test_launcher_output_goes_to_logger(self, linux: None) -> None:
        log = MagicMock(spec=logging.Logger)
        with patch("copctl.auth.browser.shutil.which", return_value="/usr/bin/xdg-open"), \
             patch(
                 "copctl.auth.browser.subprocess.Popen",
                 side_effect=_popen(out="Opening in existing browser session.\n"),
             ) as popen:
            BrowserLauncher(log).open(URI)

        popen.assert_called_once()
        assert popen.call_args.args[0] == ["xdg-open", URI]
        assert popen.call_args.kwargs["stdout"] is not subprocess.PIPE
        log.info.assert_any_call("Browser launch: %s", "Opening in existing browser session.")

    def test_nothing_printed_to_stdout(
        self, linux: None, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("copctl.auth.browser.shutil.which", return_value="/usr/bin/xdg-open"), \
             patch(
                 "copctl.auth.browser.subprocess.Popen",
                 side_effect=_popen(out="Opening in existing browser session.\n", err="gio: noise\n"),
             ):
            BrowserLauncher().open(URI)

        assert capsys.readouterr().out == ""

    def test_timeout_counts_as_launched(self, linux: None) -> None:
        proc = MagicMock()
        proc.wait.side_effect = subprocess.TimeoutExpired("xdg-open", 0.1)
        with patch("copctl.auth.browser.shutil.which", return_value="/usr/bin/xdg-open"), \
             patch("copctl.auth.browser.subprocess.Popen", return_value=proc) as popen:
            BrowserLauncher(launch_timeout=0.1).open(URI)
        popen.assert_called_once()

    def test_failed_command_tries_next(self, linux: None) -> None:
        statuses = iter([3, 0])

        def factory(command: list[str], **kwargs: Any) -> MagicMock:
            proc = MagicMock()
            proc.wait.return_value = next(statuses)
            return proc

        with patch("copctl.auth.browser.shutil.which", return_value="/usr/bin/x"), \
             patch("copctl.auth.browser.subprocess.Popen", side_effect=factory) as popen:
            BrowserLauncher().open(URI)
        assert [c.args[0][0] for c in popen.call_args_list] == ["xdg-open", "wslview"]

    def test_no_launcher_installed(self, linux: None) -> None:
        with patch("copctl.auth.browser.shutil.which", return_value=None), \
             patch("copctl.auth.browser.subprocess.Popen") as popen:
            with pytest.raises(BrowserLaunchError, match="no launch command found"):
                BrowserLauncher().open(URI)
        popen.assert_not_called()

    def test_all_commands_fail(self, linux: None) -> None:
        with patch("copctl.auth.browser.shutil.which", return_value="/usr/bin/x"), \
             patch("copctl.auth.browser.subprocess.Popen", side_effect=OSError("exec failed")):
            with pytest.raises(BrowserLaunchError) as exc_info:
                BrowserLauncher().open(URI)

        assert isinstance(exc_info.value, LocalResourceError)
        assert "exec failed" in str(exc_info.value)

    def test_open_browser_helper(self, linux: None) -> None:
        with patch("copctl.auth.browser.shutil.which", return_value=None):
            with pytest.raises(BrowserLaunchError):
                open_browser(URI)


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
class TestRealLauncher:
    def test_backgrounded_browser_does_not_block(
        self,
        linux: None,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        script = tmp_path / "xdg-open"
        script.write_text(
            "#!/bin/sh\n"
            'echo "Opening in existing browser session."\n'
            "sleep 10 &\n"
            "exit 0\n"
        )
        script.chmod(script.stat().st_mode | stat.S_IEXEC)
        monkeypatch.setenv("PATH", f"{tmp_path}{os.pathsep}{os.environ.get('PATH', '')}")

        started = time.monotonic()
        with caplog.at_level(logging.INFO, logger="copctl.auth.browser"):
            BrowserLauncher(launch_timeout=5).open(URI)
        elapsed = time.monotonic() - started

        assert elapsed < 3
        assert "Opening in existing browser session." in caplog.text
        assert "still running" not in caplog.text
