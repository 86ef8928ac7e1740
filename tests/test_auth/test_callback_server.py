"""Tests for the OAuth2 redirect listener, over real loopback sockets."""

from __future__ import annotations

import logging
import threading
from http.client import HTTPConnection

import pytest

from copctl.auth.callback import AuthorizationPromise, CallbackServer
from copctl.exceptions import (
    AuthError,
    CallbackBindError,
    CallbackTimeoutError,
    ConfigError,
    LocalResourceError,
)
from copctl.models import AuthorizationResult


def _get(server: CallbackServer, path: str) -> tuple[int, str]:
    """Send a GET to the running listener and return (status, body)."""
    host, port = server.address
    conn = HTTPConnection(host, port, timeout=5)
    try:
        conn.request("GET", path)
        response = conn.getresponse()
        return response.status, response.read().decode("utf-8")
    finally:
        conn.close()


@pytest.fixture
def server(redirect_uri: str):
    srv = CallbackServer(redirect_uri)
    srv.start()
    yield srv
    srv.stop()


# ---------------------------------------------------------------------------
# AuthorizationPromise
# ---------------------------------------------------------------------------


class TestAuthorizationPromise:
    def test_resolves_once(self) -> None:
        promise = AuthorizationPromise()
        first = AuthorizationResult(code="a")
        assert promise.resolve(first) is True
        assert promise.resolve(AuthorizationResult(code="b")) is False
        assert promise.wait(0) == first

    def test_timeout(self) -> None:
        with pytest.raises(CallbackTimeoutError, match="within 0.05 seconds"):
            AuthorizationPromise().wait(0.05)

    def test_cancel_releases_waiter(self) -> None:
        promise = AuthorizationPromise()
        assert promise.cancel() is True
        assert promise.done
        with pytest.raises(AuthError, match="cancelled"):
            promise.wait(1)

    def test_cancel_after_resolve_keeps_result(self) -> None:
        promise = AuthorizationPromise()
        promise.resolve(AuthorizationResult(code="a"))
        assert promise.cancel() is False
        assert promise.wait(0).code == "a"

    def test_concurrent_resolvers_settle_once(self) -> None:
        promise = AuthorizationPromise()
        wins: list[bool] = []

        def resolver(n: int) -> None:
            wins.append(promise.resolve(AuthorizationResult(code=str(n))))

        threads = [threading.Thread(target=resolver, args=(n,)) for n in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert wins.count(True) == 1


# ---------------------------------------------------------------------------
# CallbackServer
# ---------------------------------------------------------------------------


class TestCallbackServer:
    def test_delivers_exact_values(self, server: CallbackServer) -> None:
        status, body = _get(server, "/callback?code=abc&scope=openid%20x&state=s1")

        assert status == 200
        assert body == "Login successful. You can close this browser window."
        result = server.wait(timeout=2)
        assert result == AuthorizationResult(code="abc", scope="openid x", state="s1")

    def test_other_path_is_404_and_not_delivered(self, server: CallbackServer) -> None:
        status, _ = _get(server, "/favicon.ico?code=abc&state=s1")

        assert status == 404
        assert not server.promise.done
        with pytest.raises(CallbackTimeoutError):
            server.wait(timeout=0.1)

    def test_path_match_is_exact(self, server: CallbackServer) -> None:
        status, _ = _get(server, "/callback/extra?code=abc")
        assert status == 404
        assert not server.promise.done

    def test_second_callback_is_rejected(self, server: CallbackServer) -> None:
        assert _get(server, "/callback?code=first&scope=s&state=x")[0] == 200
        status, body = _get(server, "/callback?code=second&scope=s&state=x")

        assert status == 409
        assert "already completed" in body
        assert server.wait(timeout=1).code == "first"

    def test_missing_params_default_to_empty(
        self, server: CallbackServer, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="copctl.auth.callback"):
            status, _ = _get(server, "/callback?code=abc")
            result = server.wait(timeout=2)

        assert status == 200
        assert result.code == "abc"
        assert result.scope == ""
        assert result.state == ""
        assert "'scope'" in caplog.text
        assert "'state'" in caplog.text

    def test_duplicate_params_use_first_value(
        self, server: CallbackServer, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="copctl.auth.callback"):
            _get(server, "/callback?code=one&code=two&scope=s&state=st")
            result = server.wait(timeout=2)

        assert result.code == "one"
        assert "received 2" in caplog.text
        assert "two" not in caplog.text

    def test_error_redirect_is_delivered_as_failure(self, server: CallbackServer) -> None:
        status, body = _get(
            server, "/callback?error=access_denied&error_description=nope&state=s1"
        )

        assert status == 200
        assert "access_denied" in body
        result = server.wait(timeout=2)
        assert result.error == "access_denied"
        assert result.error_description == "nope"
        assert result.code == ""

    def test_address_reports_bound_port(self, redirect_uri: str) -> None:
        port = int(redirect_uri.rsplit(":", 1)[1].split("/")[0])
        with CallbackServer(redirect_uri) as srv:
            assert srv.is_running
            assert srv.address == ("127.0.0.1", port)
        assert not srv.is_running

    def test_timeout_without_callback(self, server: CallbackServer) -> None:
        with pytest.raises(CallbackTimeoutError):
            server.wait(timeout=0.1)

    def test_stop_is_idempotent(self, redirect_uri: str) -> None:
        srv = CallbackServer(redirect_uri)
        srv.stop()
        srv.start()
        srv.stop()
        srv.stop()
        assert not srv.is_running

    def test_stop_releases_waiter(self, redirect_uri: str) -> None:
        srv = CallbackServer(redirect_uri)
        srv.start()
        errors: list[Exception] = []

        def waiter() -> None:
            try:
                srv.wait(timeout=10)
            except AuthError as exc:
                errors.append(exc)

        t = threading.Thread(target=waiter, daemon=True)
        t.start()
        srv.stop()
        t.join(timeout=5)

        assert not t.is_alive()
        assert len(errors) == 1
        assert not isinstance(errors[0], CallbackTimeoutError)

    def test_port_is_released_after_stop(self, redirect_uri: str) -> None:
        first = CallbackServer(redirect_uri)
        first.start()
        first.stop()

        second = CallbackServer(redirect_uri)
        second.start()
        second.stop()

    def test_bind_conflict(self, server: CallbackServer, redirect_uri: str) -> None:
        with pytest.raises(CallbackBindError) as exc_info:
            CallbackServer(redirect_uri).start()
        assert isinstance(exc_info.value, LocalResourceError)

    def test_redirect_uri_requires_port(self) -> None:
        with pytest.raises(ConfigError):
            CallbackServer("http://127.0.0.1/callback")
