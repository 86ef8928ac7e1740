"""Auth manager -- registry and dispatcher for login strategies.

The :class:`AuthManager` maps each :class:`~copctl.models.AuthMethod` to a
concrete :class:`~copctl.auth.base.AuthStrategy` and exposes a single
:meth:`~AuthManager.login` method that the CLI calls before talking to the
knowledge store.

For most use cases, call :func:`create_default_manager` to get a manager
pre-loaded with every built-in strategy.

See Also:
    :class:`~copctl.client.KnowledgeStoreClient` -- consumes the
    authenticated session produced here.
"""

from __future__ import annotations

import logging

from copctl.auth.base import AuthStrategy
from copctl.exceptions import UnsupportedAuthMethodError
from copctl.models import AuthMethod, ClientSession, TokenSet

logger = logging.getLogger(__name__)


class HeadlessAuth(AuthStrategy):
    """Placeholder for username/password login, which the platform does not offer yet."""

    @property
    def method(self) -> AuthMethod:
        return AuthMethod.HEADLESS

    def authenticate(self, session: ClientSession) -> TokenSet:
        raise UnsupportedAuthMethodError(
            "Headless authentication is not implemented yet; "
            "use the 'oauth' or 'service-principal' auth method"
        )


class AuthManager:
    """Registry and dispatcher for authentication strategies.

    Strategies are registered by their :attr:`~AuthStrategy.method`. When
    :meth:`login` is called with a :class:`~copctl.models.ClientSession`,
    the manager looks up the strategy for ``session.auth_method`` and
    delegates to it exactly once.

    Example::

        manager = AuthManager()
        manager.register(ServicePrincipalAuth())
        session = manager.login(session)
    """

    def __init__(self) -> None:
        self._strategies: dict[AuthMethod, AuthStrategy] = {}

    def register(self, strategy: AuthStrategy) -> None:
        """Register a strategy, replacing any previous one for the same method."""
        self._strategies[strategy.method] = strategy

    def get_strategy(self, method: AuthMethod) -> AuthStrategy:
        """Retrieve the strategy registered for *method*.

        Raises:
            RuntimeError: If no strategy is registered. Every
                :class:`~copctl.models.AuthMethod` is expected to have one,
                so this indicates a programming error rather than bad input.
        """
        strategy = self._strategies.get(method)
        if strategy is None:
            raise RuntimeError(f"bug: unhandled authentication method {method.value!r}")
        return strategy

    def login(self, session: ClientSession) -> ClientSession:
        """Authenticate *session* with its configured method.

        Args:
            session: The unauthenticated session. Not modified.

        Returns:
            A copy of *session* with ``token`` set, and ``refresh_token``
            set when the server issued one.

        Raises:
            CopError: Whatever the selected strategy raises.
            RuntimeError: If the method has no registered strategy.
        """
        strategy = self.get_strategy(session.auth_method)
        logger.debug("Logging in with auth method %s", session.auth_method.value)
        tokens = strategy.authenticate(session)

        update: dict[str, str] = {"token": tokens.access_token}
        if tokens.refresh_token:
            update["refresh_token"] = tokens.refresh_token
        return session.model_copy(update=update)

    def list_methods(self) -> list[AuthMethod]:
        """Return the registered methods in declaration order."""
        return [m for m in AuthMethod if m in self._strategies]


def create_default_manager() -> AuthManager:
    """Create an :class:`AuthManager` with all built-in strategies.

    - ``oauth`` -- :class:`~copctl.auth.oauth.OAuthFlow`.
    - ``service-principal`` --
      :class:`~copctl.auth.service_principal.ServicePrincipalAuth`.
    - ``headless`` -- :class:`HeadlessAuth` (always fails as unsupported).
    """
    from copctl.auth.oauth import OAuthFlow
    from copctl.auth.service_principal import ServicePrincipalAuth

    manager = AuthManager()
    manager.register(OAuthFlow())
    manager.register(ServicePrincipalAuth())
    manager.register(HeadlessAuth())
    return manager
