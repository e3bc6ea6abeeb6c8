"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~editron_auth.exceptions.EditronAuthError` subclass.
Shell wrappers around ``editron-auth`` can inspect the exit code to tell a
rejected login from an unreachable backend without parsing stderr.

Example::

    $ editron-auth status
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- no valid session
"""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or in an invalid state."""

EXIT_AUTH_FAILURE = 3
"""The stored session is missing, expired, or was rejected by the backend."""

EXIT_PROVIDER_ERROR = 5
"""The backend or identity provider rejected a request or answered with garbage."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CALLBACK_TIMEOUT = 7
"""No authorization callback arrived before the configured deadline."""

EXIT_SETUP_FAILURE = 8
"""The login could not be set up (no free callback port, browser unavailable)."""

EXIT_PERSISTENCE_ERROR = 10
"""The session store could not be read or written."""
