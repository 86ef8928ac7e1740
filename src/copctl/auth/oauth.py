"""OAuth2 Authorization Code flow with PKCE.

This module provides :class:`OAuthFlow`, the strategy behind the ``oauth``
auth method. A login runs as a single attempt with no state kept between
attempts:

1. **Refresh check** -- if the session already holds a refresh token, use
   it and stop. A failed refresh is reported as-is; there is no fallback
   to the browser flow.
2. **Prepare challenge** -- generate a PKCE verifier and, independently, a
   ``state`` nonce.
3. **Build the authorization URL** -- ``client_id``, ``redirect_uri``,
   scopes ``openid introspect_tokens offline_access``, ``state``, and the
   ``S256`` challenge.
4. **Await the callback** -- start the local
   :class:`~copctl.auth.callback.CallbackServer`, open the browser (or log
   the URL if that fails), and wait for the redirect with a deadline.
5. **Validate state** -- a mismatch raises
   :class:`~copctl.exceptions.SecurityError` before any token request.
6. **Exchange the code** -- form POST to the token endpoint with the
   verifier.
7. **Return tokens** -- the caller stores them on the session.

The callback server is stopped on every exit path once started.

See Also:
    :mod:`copctl.auth.pkce` for the verifier and challenge helpers.
    :mod:`copctl.auth.tokens` for token endpoint error handling.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from copctl.auth.base import AuthStrategy, http_client_for
from copctl.auth.browser import BrowserLauncher
from copctl.auth.callback import CallbackServer
from copctl.auth.constants import (
    CODE_CHALLENGE_METHOD,
    OAUTH2_AUTHORIZE_SUFFIX,
    OAUTH2_CLIENT_ID,
    OAUTH2_TOKEN_SUFFIX,
    OAUTH_REDIRECT_URI,
    OAUTH_SCOPES,
)
from copctl.auth.pkce import generate_pkce_pair, generate_verifier
from copctl.auth.tokens import oauth_endpoint, post_token_request, read_token_response
from copctl.exceptions import (
    AuthError,
    AuthorizationDeniedError,
    BrowserLaunchError,
    CallbackShutdownError,
    SecurityError,
)
from copctl.models import AuthMethod, AuthorizationResult, ClientSession, TokenSet

logger = logging.getLogger(__name__)


def verify_state(sent: str, received: str) -> None:
    """Check the callback ``state`` against the nonce that was sent.

    Raises:
        SecurityError: If the values differ in any way.
    """
    if not hmac.compare_digest(sent.encode("utf-8"), received.encode("utf-8")):
        raise SecurityError(
            "Login failed: received auth state doesn't match (a session replay or "
            "similar attack is likely in progress; please log out of all sessions!)"
        )


class OAuthFlow(AuthStrategy):
    """Authenticate via OAuth2 Authorization Code grant with PKCE.

    Args:
        launcher: Opens the authorization URL. Defaults to a
            :class:`~copctl.auth.browser.BrowserLauncher` logging to this
            module's logger.
        redirect_uri: Where the authorization server redirects back to.
            Its host and port are bound by the callback server.
        callback_timeout: Seconds to wait for the redirect. Defaults to
            the session's ``callback_timeout``.
        scopes: Scopes requested in the authorization URL.
    """

    def __init__(
        self,
        launcher: Optional[BrowserLauncher] = None,
        redirect_uri: str = OAUTH_REDIRECT_URI,
        callback_timeout: Optional[float] = None,
        scopes: tuple[str, ...] = OAUTH_SCOPES,
    ) -> None:
        self._launcher = launcher or BrowserLauncher(logger)
        self._redirect_uri = redirect_uri
        self._callback_timeout = callback_timeout
        self._scopes = scopes

    @property
    def method(self) -> AuthMethod:
        return AuthMethod.OAUTH

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    def authenticate(self, session: ClientSession) -> TokenSet:
        """Refresh when a refresh token is present, otherwise log in interactively.

        Raises:
            AuthError: Or a subclass, when any step fails.
            ConfigError: If the session URL or tenant cannot form endpoints.
            LocalResourceError: If the callback port cannot be bound.
            ConnectionError_: On transport failures.
        """
        logger.info("Starting OAuth authentication flow")
        if session.refresh_token:
            tokens = self.refresh(session)
            logger.info("Access token refreshed successfully")
            return tokens
        return self.login_interactive(session)

    def login_interactive(self, session: ClientSession) -> TokenSet:
        """Run the full browser-based authorization code flow."""
        token_url = oauth_endpoint(session, OAUTH2_TOKEN_SUFFIX)

        pkce = generate_pkce_pair()
        state = generate_verifier()
        auth_url = self.build_authorization_url(session, pkce.challenge, state)

        timeout = self._callback_timeout
        if timeout is None:
            timeout = session.callback_timeout
        result = self._await_callback(auth_url, timeout)

        if result.error:
            detail = result.error
            if result.error_description:
                detail += f" - {result.error_description}"
            raise AuthorizationDeniedError(f"Authorization was denied: {detail}")

        verify_state(state, result.state)

        if not result.code:
            raise AuthError("Login failed: the authorization callback did not include a code")

        with http_client_for(session) as client:
            return self.exchange_code(client, token_url, pkce.verifier, result)

    def build_authorization_url(
        self, session: ClientSession, challenge: str, state: str
    ) -> str:
        """Return the authorization endpoint URL for one login attempt."""
        params = {
            "client_id": OAUTH2_CLIENT_ID,
            "code_challenge": challenge,
            "code_challenge_method": CODE_CHALLENGE_METHOD,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._scopes),
            "state": state,
        }
        return f"{oauth_endpoint(session, OAUTH2_AUTHORIZE_SUFFIX)}?{urlencode(params)}"

    def exchange_code(
        self,
        client: httpx.Client,
        token_url: str,
        code_verifier: str,
        result: AuthorizationResult,
    ) -> TokenSet:
        """Exchange the authorization code for tokens.

        Raises:
            TokenRequestError: On a non-2xx response (structured error or
                raw body as detail).
            TokenParseError: If a 2xx body is not a token object.
            ConnectionError_: On transport failures.
        """
        logger.info("Exchanging authorization code for an access token")
        data = {
            "grant_type": "authorization_code",
            "client_id": OAUTH2_CLIENT_ID,
            "code_verifier": code_verifier,
            "code": result.code,
            "redirect_uri": self._redirect_uri,
        }
        response = post_token_request(client, token_url, data)
        return read_token_response(response, strict=True)

    def refresh(self, session: ClientSession) -> TokenSet:
        """Exchange the session's refresh token for new tokens.

        A non-2xx status is logged and the body is still parsed.

        Raises:
            AuthError: If the session has no refresh token.
            TokenRequestError: If the response carries no usable token.
            TokenParseError: If the body is not a token object.
            ConnectionError_: On transport failures.
        """
        if not session.refresh_token:
            raise AuthError("No refresh token available")

        logger.info("Trying to get a new access token using the refresh token")
        token_url = oauth_endpoint(session, OAUTH2_TOKEN_SUFFIX)
        data = {
            "client_id": OAUTH2_CLIENT_ID,
            "redirect_uri": self._redirect_uri,
            "grant_type": "refresh_token",
            "refresh_token": session.refresh_token,
        }
        with http_client_for(session) as client:
            response = post_token_request(client, token_url, data)
        if not response.is_success:
            logger.error("Token refresh failed, status %d; more info to follow", response.status_code)
        return read_token_response(response, strict=False)

    def _await_callback(self, auth_url: str, timeout: float) -> AuthorizationResult:
        """Start the callback server, open the browser, and wait for the redirect."""
        server = CallbackServer(self._redirect_uri)
        server.start()
        try:
            try:
                self._launcher.open(auth_url)
            except BrowserLaunchError as exc:
                logger.error("Failed to automatically launch browser auth window: %s", exc)
                logger.error("Please visit the following URL to login\n%s", auth_url)
            else:
                logger.info("If the browser did not open, visit the following URL to login\n%s", auth_url)
            return server.wait(timeout)
        finally:
            try:
                server.stop()
            except CallbackShutdownError as exc:
                logger.warning("Continuing after callback server shutdown failure: %s", exc)
