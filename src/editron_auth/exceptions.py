"""Exception hierarchy for editron_auth.

All exceptions inherit from :class:`EditronAuthError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`editron_auth.exit_codes`. The top-level error handler in
:func:`editron_auth.app.main` catches ``EditronAuthError`` and exits with the
appropriate code, while unexpected exceptions produce a crash log and exit
with :data:`EXIT_GENERIC_FAILURE`.

None of these conditions is fatal to a host process: every failure can be
recovered from by starting a new login.

Subclass hierarchy::

    EditronAuthError (exit 1)
    +-- ConfigError               (exit 1)
    +-- NetworkError              (exit 6)
    +-- AuthProviderError         (exit 5)
    |   +-- BackendRejectedError
    |   +-- MalformedResponseError
    |   +-- AuthorizationDeniedError
    +-- UnauthorizedError         (exit 3)
    +-- NotAuthenticatedError     (exit 3)
    +-- CallbackTimeoutError      (exit 7)
    +-- NoPortAvailableError      (exit 8)
    +-- BrowserLaunchError        (exit 8)
    +-- NoActiveSessionError      (exit 2)
    +-- PersistenceError          (exit 10)
"""

from __future__ import annotations

from typing import Optional

from editron_auth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CALLBACK_TIMEOUT,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PERSISTENCE_ERROR,
    EXIT_PROVIDER_ERROR,
    EXIT_SETUP_FAILURE,
)


class EditronAuthError(Exception):
    """Base exception for all editron_auth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`editron_auth.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(EditronAuthError):
    """Raised for configuration problems (invalid JSON, unparseable env overrides)."""

    exit_code = EXIT_GENERIC_FAILURE


class NetworkError(EditronAuthError):
    """Raised when the backend cannot be reached (DNS, refused connection, timeout).

    Never retried automatically; the caller decides whether to try again.
    """

    exit_code = EXIT_CONNECTION_ERROR


class AuthProviderError(EditronAuthError):
    """Raised when the backend or identity provider refuses or garbles a response.

    Args:
        message: Human-readable error description.
        status_code: HTTP status of the offending response, when there was one.
        body: Raw response body, when there was one.
    """

    exit_code = EXIT_PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BackendRejectedError(AuthProviderError):
    """Raised when a backend endpoint answers with a non-success HTTP status."""


class MalformedResponseError(AuthProviderError):
    """Raised when a success response cannot be parsed into the expected shape."""


class AuthorizationDeniedError(AuthProviderError):
    """Raised when the identity provider redirects back with an ``error`` instead of a code.

    Args:
        reason: The provider's error string (e.g. ``"access_denied"``).
    """

    def __init__(self, reason: str):
        super().__init__(f"Authorization failed: {reason}")
        self.reason = reason


class UnauthorizedError(EditronAuthError):
    """Raised when the backend answers HTTP 401 to a bearer-authenticated request.

    This is the only outcome that invalidates a stored access token.
    """

    exit_code = EXIT_AUTH_FAILURE


class NotAuthenticatedError(EditronAuthError):
    """Raised when an operation needs an access token and none is stored."""

    exit_code = EXIT_AUTH_FAILURE


class CallbackTimeoutError(EditronAuthError):
    """Raised when no authorization callback arrives before the deadline."""

    exit_code = EXIT_CALLBACK_TIMEOUT


class NoPortAvailableError(EditronAuthError):
    """Raised when every port in the configured callback range is taken."""

    exit_code = EXIT_SETUP_FAILURE


class BrowserLaunchError(EditronAuthError):
    """Raised when the system browser cannot be opened."""

    exit_code = EXIT_SETUP_FAILURE


class NoActiveSessionError(EditronAuthError):
    """Raised when finalization finds no in-flight login to consume.

    Also the outcome for the losing side of two concurrent deliveries of
    the same callback.
    """

    exit_code = EXIT_INVALID_USAGE


class PersistenceError(EditronAuthError):
    """Raised when the session store is unavailable or holds malformed content.

    A missing document is not an error; it simply means an empty session.
    """

    exit_code = EXIT_PERSISTENCE_ERROR
