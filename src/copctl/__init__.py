"""copctl -- authenticate against the observability platform and manage knowledge-store objects.

This package acquires bearer tokens for a multi-tenant HTTP API and uses them
to read and write typed objects in the platform's knowledge store. Three
authentication strategies are supported:

* ``oauth`` -- interactive OAuth2 Authorization Code flow with PKCE, using a
  local callback listener and the user's default browser.
* ``service-principal`` -- non-interactive client-credentials grant using a
  secrets file.
* ``headless`` -- reserved; reports an explicit "not implemented" failure.

Typical usage::

    from copctl.auth import create_default_manager
    from copctl.client import KnowledgeStoreClient
    from copctl.config import resolve_session

    session = create_default_manager().login(resolve_session())
    with KnowledgeStoreClient(session) as client:
        raw = client.get_type("fmm:namespace")

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration files and session resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting and logging setup with Rich.
"""

__version__ = "0.1.0"
