"""Abstract base class for authentication strategies.

Every login method (interactive OAuth, service principal, headless) is an
:class:`AuthStrategy`. A strategy receives the unauthenticated
:class:`~copctl.models.ClientSession`, talks to the token endpoint, and
returns a :class:`~copctl.models.TokenSet`. It never mutates the session;
:class:`~copctl.auth.manager.AuthManager` applies the tokens.

See Also:
    :mod:`copctl.auth.manager` for strategy registration and dispatch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator

import httpx

from copctl.models import AuthMethod, ClientSession, TokenSet


class AuthStrategy(ABC):
    """Abstract base class for authentication strategies.

    Subclasses provide:

    1. A :attr:`method` property naming the
       :class:`~copctl.models.AuthMethod` they implement.
    2. An :meth:`authenticate` implementation returning a token set with a
       non-empty access token, or raising a
       :class:`~copctl.exceptions.CopError` subclass.
    """

    @property
    @abstractmethod
    def method(self) -> AuthMethod:
        """Return the authentication method this strategy handles."""
        ...

    @abstractmethod
    def authenticate(self, session: ClientSession) -> TokenSet:
        """Obtain tokens for *session*.

        Args:
            session: The session to authenticate. Not modified.

        Returns:
            A :class:`~copctl.models.TokenSet` whose ``access_token`` is set.

        Raises:
            CopError: On any failure; no partial tokens are returned.
        """
        ...


@contextmanager
def http_client_for(session: ClientSession) -> Iterator[httpx.Client]:
    """Yield the session's HTTP client, or a temporary one closed on exit."""
    if session.http_client is not None:
        yield session.http_client
        return
    client = httpx.Client(timeout=session.timeout, follow_redirects=False)
    try:
        yield client
    finally:
        client.close()
