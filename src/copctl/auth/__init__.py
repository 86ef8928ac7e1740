"""Authentication for copctl.

This package turns a :class:`~copctl.models.ClientSession` into an
authenticated one. Each login method is an :class:`AuthStrategy`:

- :class:`OAuthFlow` -- interactive Authorization Code flow with PKCE, a
  local callback listener, and the user's browser.
- :class:`ServicePrincipalAuth` -- Client Credentials grant from a secrets
  file.
- :class:`HeadlessAuth` -- reserved; always reports the method as
  unsupported.

:class:`AuthManager` selects the strategy for the session's auth method.

Typical usage::

    from copctl.auth import create_default_manager

    session = create_default_manager().login(session)
    # session.token is ready to send as a bearer token.
"""

from copctl.auth.base import AuthStrategy
from copctl.auth.manager import AuthManager, HeadlessAuth, create_default_manager
from copctl.auth.oauth import OAuthFlow
from copctl.auth.service_principal import ServicePrincipalAuth, read_credentials

__all__ = [
    "AuthStrategy",
    "AuthManager",
    "HeadlessAuth",
    "OAuthFlow",
    "ServicePrincipalAuth",
    "create_default_manager",
    "read_credentials",
]
