"""Fixed values of the platform's OAuth2 deployment and knowledge-store API."""

OAUTH2_CLIENT_ID = "default"
"""Public client identifier; also the authorization-server segment of the auth URLs."""

OAUTH2_AUTHORIZE_SUFFIX = "oauth2/authorize"
"""Endpoint that issues authorization codes."""

OAUTH2_TOKEN_SUFFIX = "oauth2/token"  # noqa: S105
"""Endpoint that exchanges codes, refresh tokens and client credentials for tokens."""

OAUTH_REDIRECT_URI = "http://127.0.0.1:3101/callback"
"""Where the authorization server sends the browser back to."""

OAUTH_SCOPES = ("openid", "introspect_tokens", "offline_access")

CODE_CHALLENGE_METHOD = "S256"
"""PKCE challenge method. The ``plain`` method is not supported."""

DEFAULT_CALLBACK_TIMEOUT = 300.0
"""Seconds to wait for the browser redirect before giving up."""

CALLBACK_READ_TIMEOUT = 5.0
"""Per-connection socket timeout guarding the callback listener against stalled clients."""

CALLBACK_SUCCESS_MESSAGE = "Login successful. You can close this browser window."

TYPE_API_PATH = "/knowledge-store/v1/types/"
OBJECT_API_PATH = "/knowledge-store/v1/objects/"
