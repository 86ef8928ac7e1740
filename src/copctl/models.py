"""Canonical Pydantic models shared across all copctl modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration models** -- read from JSON config files and the environment:
    :class:`AuthMethod`, :class:`FileConfig`, and :class:`ClientSession`.

**Token endpoint models** -- parsed from OAuth2 responses:
    :class:`TokenSet` and :class:`OAuthErrorPayload`.

**Login flow models** -- short-lived values produced during a login:
    :class:`AuthorizationResult` and :class:`ServicePrincipalCredentials`.

All models use Pydantic v2. Token endpoint models ignore unknown keys so
that servers adding fields never break parsing.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Configuration ---


class AuthMethod(str, enum.Enum):
    """The fixed set of authentication strategies.

    The string values are the ones accepted in configuration files, the
    ``COP_AUTH_METHOD`` environment variable, and the ``--auth-method``
    CLI flag.
    """

    OAUTH = "oauth"
    HEADLESS = "headless"
    SERVICE_PRINCIPAL = "service-principal"


class FileConfig(BaseModel):
    """Settings stored in ``config.json`` (user) or ``copctl.json`` (project).

    Every field is optional so that a project file can override only the
    tenant while the user file supplies the URL, for example. See
    :func:`~copctl.config.resolve_session` for the precedence chain.
    """

    model_config = ConfigDict(extra="ignore")

    url: Optional[str] = Field(
        default=None, description="Base URL, e.g. https://mytenant.observe.example.com"
    )
    tenant: Optional[str] = Field(default=None, description="Tenant identifier")
    auth_method: Optional[AuthMethod] = Field(
        default=None, description="Auth method: oauth, headless, service-principal"
    )
    username: Optional[str] = None
    password: Optional[str] = None
    secret_file: Optional[str] = Field(
        default=None, description="Path to the service-principal secrets JSON file"
    )
    timeout: Optional[float] = Field(
        default=None, description="HTTP request timeout in seconds"
    )
    callback_timeout: Optional[float] = Field(
        default=None, description="Seconds to wait for the browser redirect"
    )


class ClientSession(BaseModel):
    """The session shared by every authentication strategy and API call.

    Created once from configuration (see
    :func:`~copctl.config.resolve_session`) and handed to
    :meth:`~copctl.auth.manager.AuthManager.login`, which returns an
    authenticated copy with :attr:`token` (and possibly
    :attr:`refresh_token`) populated. The REST client reads :attr:`token`
    on every request.

    Only one login should be in flight per session at a time; the model
    performs no locking.

    Example::

        session = ClientSession(
            url="https://tenant.example.com",
            tenant="0eb4e853-34fb-4f77-b3fc-b9cd3b462366",
            auth_method=AuthMethod.SERVICE_PRINCIPAL,
            secret_file="~/secrets.json",
        )
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str = ""
    tenant: str = ""
    auth_method: AuthMethod = AuthMethod.OAUTH
    username: str = ""
    password: str = Field(default="", repr=False)
    token: str = Field(default="", repr=False)
    refresh_token: str = Field(default="", repr=False)
    secret_file: str = ""
    timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")
    callback_timeout: float = Field(
        default=300.0, description="Seconds to wait for the browser redirect"
    )
    http_client: Optional[httpx.Client] = Field(default=None, exclude=True, repr=False)

    @property
    def is_authenticated(self) -> bool:
        """Whether a bearer token is present."""
        return bool(self.token)


# --- Token endpoint ---


class TokenSet(BaseModel):
    """Tokens returned by the ``oauth2/token`` endpoint.

    Only :attr:`access_token` and :attr:`refresh_token` are retained by the
    session; the rest is informational. JSON ``null`` reads as empty.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = ""
    expires_in: int = 0
    id_token: str = ""
    refresh_token: str = ""
    scope: str = ""
    token_type: str = ""

    @field_validator("access_token", "id_token", "refresh_token", "scope", "token_type", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("expires_in", mode="before")
    @classmethod
    def _null_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class OAuthErrorPayload(BaseModel):
    """Structured error body returned by the auth and token endpoints on 4xx."""

    model_config = ConfigDict(extra="ignore")

    error: str = ""
    error_description: str = ""
    error_hint: str = ""
    status_code: int = 0

    def describe(self) -> str:
        """Render the payload as a single human-readable line."""
        parts = [self.error or "unknown_error"]
        if self.error_description:
            parts.append(self.error_description)
        if self.error_hint:
            parts.append(f"hint: {self.error_hint}")
        if self.status_code:
            parts.append(f"status_code: {self.status_code}")
        return " - ".join(parts)


# --- Login flow ---


class AuthorizationResult(BaseModel):
    """Values captured from the single accepted authorization redirect."""

    model_config = ConfigDict(frozen=True)

    code: str = ""
    scope: str = ""
    state: str = ""
    error: str = ""
    error_description: str = ""


class ServicePrincipalCredentials(BaseModel):
    """Client credentials loaded from the service-principal secrets file.

    The file uses human-friendly keys::

        {"Client ID": "srv_1a2b3c", "Secret": "..."}
    """

    model_config = ConfigDict(populate_by_name=True)

    client_id: str = Field(alias="Client ID")
    secret: str = Field(alias="Secret", repr=False)
