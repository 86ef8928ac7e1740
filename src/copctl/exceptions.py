"""Exception hierarchy for copctl.

All exceptions inherit from :class:`CopError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`copctl.exit_codes`.
The top-level error handler in :func:`copctl.app.main` catches
``CopError`` and exits with the appropriate code, while unexpected
exceptions (including the :class:`RuntimeError` raised for an unhandled
authentication method) produce a crash log and exit with
:data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    CopError (exit 1)
    +-- ConfigError                 (exit 2)
    +-- UnsupportedAuthMethodError  (exit 2)
    +-- CredentialFileError         (exit 2)
    |   +-- CredentialParseError
    +-- AuthError                   (exit 3)
    |   +-- RandomSourceError
    |   +-- ChallengeMismatchError
    |   +-- SecurityError
    |   +-- CallbackTimeoutError
    |   +-- AuthorizationDeniedError
    |   +-- TokenRequestError
    |   +-- TokenParseError
    +-- NotFoundError               (exit 4)
    +-- ServerError                 (exit 5)
    +-- ConnectionError_            (exit 6)
    +-- LocalResourceError          (exit 8)
        +-- CallbackBindError
        +-- CallbackShutdownError
        +-- BrowserLaunchError
"""

from __future__ import annotations

from typing import Any, Optional

from copctl.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LOCAL_RESOURCE_ERROR,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class CopError(Exception):
    """Base exception for all copctl errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`copctl.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(CopError):
    """Raised for configuration problems (missing settings, invalid JSON, unbuildable URLs)."""

    exit_code = EXIT_INVALID_USAGE


class UnsupportedAuthMethodError(CopError):
    """Raised when a recognised but unimplemented authentication method is used."""

    exit_code = EXIT_INVALID_USAGE


class CredentialFileError(CopError):
    """Raised when the service-principal secrets file cannot be read."""

    exit_code = EXIT_INVALID_USAGE


class CredentialParseError(CredentialFileError):
    """Raised when the secrets file is not a JSON object with ``Client ID`` and ``Secret``."""


class AuthError(CopError):
    """Raised when authentication or authorisation fails."""

    exit_code = EXIT_AUTH_FAILURE


class RandomSourceError(AuthError):
    """Raised when the system entropy source cannot supply random bytes."""


class ChallengeMismatchError(AuthError):
    """Raised when a PKCE verifier does not hash to the expected challenge."""


class SecurityError(AuthError):
    """Raised when the callback ``state`` does not match the nonce that was sent.

    Distinct from ordinary validation failures: a mismatch means the
    redirect did not originate from this login attempt, which is the
    signature of a replayed or forged authorization response.
    """


class CallbackTimeoutError(AuthError):
    """Raised when no authorization redirect arrives before the deadline."""


class AuthorizationDeniedError(AuthError):
    """Raised when the authorization server redirects back with an ``error``."""


class TokenRequestError(AuthError):
    """Raised when the token endpoint answers with an error.

    Args:
        message: Human-readable description including the salvaged detail.
        status_code: HTTP status of the token endpoint response.
        detail: Either the raw response body or a rendering of the
            structured OAuth error payload.
        payload: The parsed error payload, when the body was JSON.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        detail: str = "",
        payload: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.payload = payload


class TokenParseError(AuthError):
    """Raised when a token endpoint response body is not a token object."""


class NotFoundError(CopError):
    """Raised when the API returns HTTP 404 (object or type not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(CopError):
    """Raised when the API returns an error status other than 401, 403 or 404."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(CopError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class LocalResourceError(CopError):
    """Raised when a local resource needed for login cannot be used."""

    exit_code = EXIT_LOCAL_RESOURCE_ERROR


class CallbackBindError(LocalResourceError):
    """Raised when the callback listener cannot bind the redirect host and port."""


class CallbackShutdownError(LocalResourceError):
    """Raised when the callback listener fails to close cleanly."""


class BrowserLaunchError(LocalResourceError):
    """Raised when no browser launch mechanism succeeded."""
