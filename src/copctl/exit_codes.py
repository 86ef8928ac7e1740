"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~copctl.exceptions.CopError` subclass. Shell
wrappers and CI jobs can inspect the exit code to tell a rejected login from
an unreachable API without parsing stderr.

Example::

    $ copctl auth login
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token endpoint rejected the request
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, configuration, or credential files."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed."""

EXIT_NOT_FOUND = 4
"""The requested object or type was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an error status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_LOCAL_RESOURCE_ERROR = 8
"""A local resource (callback port, browser) could not be used."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C."""
