"""OAuth2 Client Credentials login for service principals.

This module provides :class:`ServicePrincipalAuth`, which implements the
``service-principal`` auth method. It performs the non-interactive Client
Credentials grant (:rfc:`6749` section 4.4) against the tenant's token
endpoint, sending the principal's ``client_id`` and ``secret`` as HTTP
Basic credentials.

The credentials live in a JSON secrets file issued by the platform::

    {"Client ID": "srv_1a2b3c", "Secret": "..."}

The file is read on every login and never cached.

See Also:
    :class:`copctl.auth.base.AuthStrategy` for the base interface.
    :mod:`copctl.auth.oauth` for the interactive Authorization Code flow.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from copctl.auth.base import AuthStrategy, http_client_for
from copctl.auth.constants import OAUTH2_TOKEN_SUFFIX
from copctl.auth.tokens import oauth_endpoint, post_token_request, read_token_response
from copctl.exceptions import CredentialFileError, CredentialParseError
from copctl.models import AuthMethod, ClientSession, ServicePrincipalCredentials, TokenSet

logger = logging.getLogger(__name__)


def read_credentials(path: str | Path) -> ServicePrincipalCredentials:
    """Load service-principal credentials from a secrets file.

    Args:
        path: Path to the JSON secrets file. ``~`` is expanded.

    Returns:
        The parsed :class:`~copctl.models.ServicePrincipalCredentials`.

    Raises:
        CredentialFileError: If the file cannot be read.
        CredentialParseError: If the file is not a JSON object with
            ``Client ID`` and ``Secret`` strings.
    """
    secret_path = Path(path).expanduser()
    try:
        raw = secret_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CredentialFileError(
            f"Failed to read the service principal secrets file {str(secret_path)!r}: {exc}"
        ) from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CredentialParseError(
            f"Failed to parse the service principal secrets file {str(secret_path)!r}: {exc}"
        ) from exc
    if not isinstance(data, dict):
        raise CredentialParseError(
            f"Service principal secrets file {str(secret_path)!r} must contain a JSON object"
        )

    try:
        return ServicePrincipalCredentials.model_validate(data)
    except ValidationError as exc:
        missing = ", ".join(
            str(err["loc"][0]) for err in exc.errors() if err.get("loc")
        )
        raise CredentialParseError(
            f"Service principal secrets file {str(secret_path)!r} is missing or has "
            f"invalid fields: {missing or exc}"
        ) from exc


class ServicePrincipalAuth(AuthStrategy):
    """Authenticate via OAuth2 Client Credentials grant.

    Reads ``session.secret_file``, then exchanges the credentials for an
    access token. No refresh token is expected; a new login simply
    repeats the grant.
    """

    @property
    def method(self) -> AuthMethod:
        return AuthMethod.SERVICE_PRINCIPAL

    def authenticate(self, session: ClientSession) -> TokenSet:
        """Fetch an access token with the session's service-principal credentials.

        A non-200 answer is logged and its body is still parsed.

        Args:
            session: Must carry ``url``, ``tenant`` and ``secret_file``.

        Returns:
            A :class:`~copctl.models.TokenSet` with the access token.

        Raises:
            CredentialFileError: If the secrets file cannot be read or parsed.
            ConfigError: If the token endpoint cannot be built.
            TokenParseError: If the response body is not a token object.
            TokenRequestError: If the response carries an error and no token.
            ConnectionError_: On transport failures.
        """
        logger.info("Starting service principal authentication")
        credentials = read_credentials(session.secret_file)
        token_url = oauth_endpoint(session, OAUTH2_TOKEN_SUFFIX)

        with http_client_for(session) as client:
            response = post_token_request(
                client,
                token_url,
                {"grant_type": "client_credentials"},
                auth=(credentials.client_id, credentials.secret),
            )
        if response.status_code != 200:
            logger.error(
                "Service principal login returned status %d; more info to follow",
                response.status_code,
            )
        tokens = read_token_response(response, strict=False)
        logger.info("Service principal %s authenticated", credentials.client_id)
        return tokens
