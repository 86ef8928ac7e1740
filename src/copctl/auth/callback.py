"""Single-use local HTTP listener that captures the OAuth2 authorization redirect.

:class:`CallbackServer` binds the host and port of the redirect URI, serves
requests on a daemon thread, and hands the first matching redirect to the
waiting login flow through an :class:`AuthorizationPromise`.

Request handling rules:

* Only the exact redirect path is served; any other path gets ``404`` and
  never reaches the promise.
* ``code``, ``scope`` and ``state`` default to ``""`` (with a warning) when
  absent; when repeated, the first value wins (with a warning that names
  the parameter and the count, never the values).
* The promise resolves at most once. Later redirects to the callback path
  are answered ``409`` and dropped.
* An ``error`` parameter (the provider refused the request) is delivered
  as a failed :class:`~copctl.models.AuthorizationResult`.
* Each connection has a 5 second socket timeout so a stalled client cannot
  hold the listener.

Example::

    with CallbackServer("http://127.0.0.1:3101/callback") as server:
        open_browser(auth_url)
        result = server.wait(timeout=300)
"""

from __future__ import annotations

import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from copctl.auth.constants import (
    CALLBACK_READ_TIMEOUT,
    CALLBACK_SUCCESS_MESSAGE,
    OAUTH_REDIRECT_URI,
)
from copctl.exceptions import (
    AuthError,
    CallbackBindError,
    CallbackShutdownError,
    CallbackTimeoutError,
    ConfigError,
)
from copctl.models import AuthorizationResult

logger = logging.getLogger(__name__)


class AuthorizationPromise:
    """One-shot, thread-safe hand-off of the authorization result.

    The HTTP handler is the only writer (:meth:`resolve`); the login flow is
    the only reader (:meth:`wait`). :meth:`cancel` releases a waiter without
    a result, e.g. when the listener is stopped early.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._result: Optional[AuthorizationResult] = None
        self._cancelled = False

    @property
    def done(self) -> bool:
        """Whether the promise has been resolved or cancelled."""
        return self._event.is_set()

    def resolve(self, result: AuthorizationResult) -> bool:
        """Store *result* unless the promise is already settled.

        Returns:
            ``True`` if this call settled the promise, ``False`` otherwise.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._result = result
            self._event.set()
            return True

    def cancel(self) -> bool:
        """Settle the promise without a result.

        Returns:
            ``True`` if this call settled the promise, ``False`` otherwise.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._cancelled = True
            self._event.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> AuthorizationResult:
        """Block until the promise settles.

        Args:
            timeout: Maximum seconds to wait. ``None`` waits forever.

        Returns:
            The delivered :class:`~copctl.models.AuthorizationResult`.

        Raises:
            CallbackTimeoutError: If *timeout* elapses first.
            AuthError: If the promise was cancelled.
        """
        if not self._event.wait(timeout):
            raise CallbackTimeoutError(
                f"No authorization callback received within {timeout:g} seconds"
            )
        if self._cancelled or self._result is None:
            raise AuthError("Login was cancelled before the authorization callback arrived")
        return self._result


def _first_value(params: dict[str, list[str]], name: str, warn_missing: bool = True) -> str:
    """Return the first value of query parameter *name*, or ``""``."""
    values = params.get(name)
    if not values:
        if warn_missing:
            logger.warning("Expected a value for auth response %r, received none", name)
        return ""
    if len(values) > 1:
        logger.warning(
            "Expected a single value for auth response %r, received %d", name, len(values)
        )
    return values[0]


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackHTTPServer
    timeout = CALLBACK_READ_TIMEOUT

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path != self.server.callback_path:
            logger.info("Failing unexpected request for %r", parsed.path)
            self._respond(404, "Not Found")
            return

        params = parse_qs(parsed.query, keep_blank_values=True)
        error = _first_value(params, "error", warn_missing=False)
        if error:
            result = AuthorizationResult(
                state=_first_value(params, "state", warn_missing=False),
                error=error,
                error_description=_first_value(params, "error_description", warn_missing=False),
            )
            message = f"Login failed: {error}. You can close this browser window."
        else:
            result = AuthorizationResult(
                code=_first_value(params, "code"),
                scope=_first_value(params, "scope"),
                state=_first_value(params, "state"),
            )
            message = CALLBACK_SUCCESS_MESSAGE

        if not self.server.promise.resolve(result):
            logger.warning("Ignoring repeated authorization callback")
            self._respond(409, "Login already completed. You can close this browser window.")
            return
        self._respond(200, message)

    def _respond(self, status: int, text: str) -> None:
        body = text.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_request(self, code: Any = "-", size: Any = "-") -> None:
        # The query string carries the code and state; log the path only.
        logger.debug("callback server: %s %s -> %s", self.command, urlparse(self.path).path, code)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("callback server: " + format, *args)


class _CallbackHTTPServer(HTTPServer):
    # Another process must not be able to share the port and read the code.
    allow_reuse_port = False

    def __init__(
        self,
        address: tuple[str, int],
        callback_path: str,
        promise: AuthorizationPromise,
    ) -> None:
        self.callback_path = callback_path
        self.promise = promise
        super().__init__(address, _CallbackHandler)

    def handle_error(self, request: Any, client_address: Any) -> None:
        logger.debug(
            "Error while handling a callback request from %s", client_address[0], exc_info=True
        )


class CallbackServer:
    """Ephemeral listener for the authorization redirect.

    Args:
        redirect_uri: The redirect URI registered with the authorization
            server. Its host and port are bound; its path is the only one
            served.

    Raises:
        ConfigError: If *redirect_uri* has no host or port.
    """

    def __init__(self, redirect_uri: str = OAUTH_REDIRECT_URI) -> None:
        parsed = urlparse(redirect_uri)
        if not parsed.hostname or parsed.port is None:
            raise ConfigError(f"Redirect URI {redirect_uri!r} must include a host and port")
        self._host = parsed.hostname
        self._port = parsed.port
        self._path = parsed.path or "/"
        self.promise = AuthorizationPromise()
        self._server: Optional[_CallbackHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> tuple[str, int]:
        """The bound ``(host, port)``; the configured values before :meth:`start`."""
        if self._server is not None:
            host, port = self._server.server_address[:2]
            return str(host), int(port)
        return self._host, self._port

    @property
    def is_running(self) -> bool:
        return self._server is not None

    def start(self) -> AuthorizationPromise:
        """Bind the listener and start serving on a daemon thread.

        Returns:
            The promise that the first matching redirect resolves.

        Raises:
            CallbackBindError: If the host and port cannot be bound.
        """
        if self._server is not None:
            return self.promise
        try:
            server = _CallbackHTTPServer((self._host, self._port), self._path, self.promise)
        except OSError as exc:
            raise CallbackBindError(
                f"Could not start a local http server for auth on "
                f"{self._host}:{self._port}: {exc}"
            ) from exc

        self._server = server
        self._thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": 0.1},
            name="copctl-auth-callback",
            daemon=True,
        )
        self._thread.start()
        host, port = self.address
        logger.info("Started the auth http server on %s:%d", host, port)
        return self.promise

    def wait(self, timeout: Optional[float] = None) -> AuthorizationResult:
        """Block until the redirect arrives. See :meth:`AuthorizationPromise.wait`."""
        return self.promise.wait(timeout)

    def stop(self) -> None:
        """Stop serving and close the listener.

        Safe to call repeatedly and before any callback was received. Any
        thread still waiting on the promise is released.

        Raises:
            CallbackShutdownError: If the listening socket fails to close.
        """
        server, self._server = self._server, None
        if server is None:
            return
        host, port = server.server_address[:2]
        try:
            server.shutdown()
            server.server_close()
        except OSError as exc:
            logger.error("Error stopping the auth http server on %s:%s: %s", host, port, exc)
            raise CallbackShutdownError(
                f"Error stopping the auth http server on {host}:{port}: {exc}"
            ) from exc
        finally:
            if self._thread is not None:
                self._thread.join(timeout=CALLBACK_READ_TIMEOUT)
                self._thread = None
            self.promise.cancel()
        logger.info("Stopped the auth http server on %s:%s", host, port)

    def __enter__(self) -> CallbackServer:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()
