"""Exception hierarchy for apibase.

All exceptions inherit from :class:`ApibaseError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`apibase.exit_codes`.
The CLI entry point in :func:`apibase.app.main` catches ``ApibaseError``
and exits with the appropriate code. Library callers catch the specific
subclasses.

None of these are recovered inside the request pipeline: every error
surfaces to the caller of the call that triggered it.

Subclass hierarchy::

    ApibaseError (exit 1)
    +-- ArgumentError          (exit 2, also ValueError)
    +-- AuthError              (exit 3)
    +-- UnsupportedShapeError  (exit 4, also TypeError)
    +-- TransportError         (exit 5)
    +-- ConnectionError_       (exit 6)
    |   +-- RequestTimeoutError
    +-- ParseError             (exit 7)
    +-- ConfigError            (exit 1)
"""

from __future__ import annotations

from apibase.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PARSE_ERROR,
    EXIT_TRANSPORT_ERROR,
    EXIT_UNSUPPORTED_SHAPE,
)


class ApibaseError(Exception):
    """Base exception for all apibase errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ArgumentError(ApibaseError, ValueError):
    """Raised before any I/O for invalid arguments.

    Covers unknown method or content-kind values, a GET request carrying a
    body, an empty root URL, and ``AUTO`` used as a client default.
    """

    exit_code = EXIT_INVALID_USAGE


class AuthError(ApibaseError):
    """Raised when sign-in fails or no authenticator exists for a type."""

    exit_code = EXIT_AUTH_FAILURE


class UnsupportedShapeError(ApibaseError, TypeError):
    """Raised when a caller requests a decode target outside :class:`~apibase.models.ResponseShape`."""

    exit_code = EXIT_UNSUPPORTED_SHAPE


class TransportError(ApibaseError):
    """Raised when the API answers with a status other than 200 or 201.

    The body of the failing response is kept verbatim for diagnostics.

    Args:
        status_code: The HTTP status the server returned.
        body: The response body decoded as text (empty string when the
            response had no body).
        reason: Optional reason phrase, used in the message only.
    """

    exit_code = EXIT_TRANSPORT_ERROR

    def __init__(self, status_code: int, body: str = "", reason: str = ""):
        message = f"HTTP {status_code}"
        if reason:
            message = f"{message} {reason}"
        if body:
            message = f"{message}: {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConnectionError_(ApibaseError):
    """Raised on network-level failures (DNS resolution, connection refused, reset).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class RequestTimeoutError(ConnectionError_):
    """Raised when a call does not finish within its deadline."""


class ParseError(ApibaseError):
    """Raised when a response body does not conform to the requested shape."""

    exit_code = EXIT_PARSE_ERROR


class ConfigError(ApibaseError):
    """Raised for configuration problems (invalid JSON, missing root URL, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
