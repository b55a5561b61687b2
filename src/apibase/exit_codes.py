"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~apibase.exceptions.ApibaseError` subclass.
Shell scripts wrapping ``apibase call`` can inspect the exit code to tell a
rejected argument from a failed HTTP status without parsing stderr.

Example::

    $ apibase call GET /missing
    $ echo $?
    5   # EXIT_TRANSPORT_ERROR -- the API answered with a non-success status
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments (bad enum value, GET with a body, missing root URL)."""

EXIT_AUTH_FAILURE = 3
"""Sign-in failed or the configured auth type is unknown."""

EXIT_UNSUPPORTED_SHAPE = 4
"""The caller asked for a response shape the interpreter does not support."""

EXIT_TRANSPORT_ERROR = 5
"""The remote API answered with a status other than 200 or 201."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_PARSE_ERROR = 7
"""The response body did not match the requested JSON or XML shape."""
