"""Token endpoint plumbing shared by the OAuth and service-principal logins.

The platform's token endpoint lives at
``{url}/auth/{tenant}/default/oauth2/token`` and accepts form-encoded
``authorization_code``, ``refresh_token`` and ``client_credentials`` grants.
Error responses are usually JSON (:class:`~copctl.models.OAuthErrorPayload`)
but proxies in front of it may answer with HTML or plain text, so error
handling always falls back to the raw body instead of reporting a bare
parse failure.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote, urlparse

import httpx
from pydantic import ValidationError

from copctl.auth.constants import OAUTH2_CLIENT_ID
from copctl.exceptions import ConfigError, ConnectionError_, TokenParseError, TokenRequestError
from copctl.models import ClientSession, OAuthErrorPayload, TokenSet

logger = logging.getLogger(__name__)

_BODY_SNIPPET = 500


def oauth_endpoint(session: ClientSession, suffix: str) -> str:
    """Build ``{url}/auth/{tenant}/default/{suffix}`` for *session*.

    Raises:
        ConfigError: If the session's URL or tenant cannot form an endpoint.
    """
    base = session.url.strip().rstrip("/")
    parsed = urlparse(base)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Cannot build an OAuth2 endpoint from url {session.url!r}")
    if not session.tenant:
        raise ConfigError("Cannot build an OAuth2 endpoint without a tenant")
    tenant = quote(session.tenant, safe="")
    return f"{base}/auth/{tenant}/{OAUTH2_CLIENT_ID}/{suffix}"


def post_token_request(
    client: httpx.Client,
    url: str,
    data: dict[str, str],
    auth: Optional[httpx.Auth | tuple[str, str]] = None,
) -> httpx.Response:
    """POST a form-encoded grant to the token endpoint.

    Raises:
        ConnectionError_: On transport failures (never retried).
    """
    try:
        return client.post(
            url,
            data=data,
            auth=auth,
            headers={"Accept": "application/json"},
        )
    except httpx.HTTPError as exc:
        raise ConnectionError_(f"POST request to {url!r} failed: {exc}") from exc


def _snippet(response: httpx.Response) -> str:
    text = response.text.strip()
    if len(text) > _BODY_SNIPPET:
        return text[:_BODY_SNIPPET] + "..."
    return text


def token_error(response: httpx.Response) -> TokenRequestError:
    """Build a :class:`~copctl.exceptions.TokenRequestError` from an error response.

    Uses the structured OAuth error payload when the body carries one and
    the full raw body text otherwise. Only the message is shortened.
    """
    parsed: Any = None
    payload: Optional[OAuthErrorPayload] = None
    try:
        parsed = response.json()
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        try:
            payload = OAuthErrorPayload.model_validate(parsed)
        except ValidationError:
            payload = None

    if payload is not None and payload.error:
        detail = payload.describe()
        shown = detail
        raw_payload: Optional[dict[str, Any]] = parsed
    else:
        detail = response.text.strip() or "<empty body>"
        shown = _snippet(response) or "<empty body>"
        raw_payload = None

    return TokenRequestError(
        f"Token request failed with status {response.status_code}: {shown}",
        status_code=response.status_code,
        detail=detail,
        payload=raw_payload,
    )


def parse_token_set(response: httpx.Response) -> TokenSet:
    """Parse a token endpoint body into a :class:`~copctl.models.TokenSet`.

    Raises:
        TokenParseError: If the body is not a JSON object of token fields.
    """
    try:
        data = response.json()
    except ValueError as exc:
        raise TokenParseError(
            f"Failed to JSON parse the response (status {response.status_code}) "
            f"as a token object: {exc}; body: {_snippet(response) or '<empty body>'}"
        ) from exc
    if not isinstance(data, dict):
        raise TokenParseError(
            f"Token response (status {response.status_code}) is not a JSON object"
        )
    try:
        return TokenSet.model_validate(data)
    except ValidationError as exc:
        raise TokenParseError(f"Token response has unexpected field types: {exc}") from exc


def read_token_response(response: httpx.Response, strict: bool = True) -> TokenSet:
    """Turn a token endpoint response into tokens or a typed failure.

    Args:
        response: The token endpoint response.
        strict: When ``True`` any non-2xx status fails immediately. When
            ``False`` the body is parsed regardless of status and a usable
            ``access_token`` is accepted even from an error status.

    Returns:
        A :class:`~copctl.models.TokenSet` with a non-empty access token.

    Raises:
        TokenRequestError: On an error status without a usable token.
        TokenParseError: If the body cannot be parsed, or a 2xx body has
            no ``access_token``.
    """
    if not response.is_success and strict:
        raise token_error(response)

    tokens = parse_token_set(response)
    if tokens.access_token:
        if not response.is_success:
            logger.warning(
                "Token endpoint returned status %d but the body carried an access token",
                response.status_code,
            )
        return tokens
    if not response.is_success:
        raise token_error(response)
    raise TokenParseError("Token response missing 'access_token' field")
