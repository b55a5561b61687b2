"""Abstract bases for authentication strategies.

Authentication is split into three small interfaces that a concrete
strategy composes rather than inherits wholesale:

- :class:`Authenticator` -- carries the sign-in hook. The session latch
  awaits :meth:`Authenticator.sign_in` once, before the first call.
- :class:`HeaderCredentials` -- attaches proof of authorization to the
  pending request's headers (e.g. ``Authorization: Bearer ...``).
- :class:`QueryCredentials` -- appends signed parameters to the request's
  query string (e.g. an API key, a timestamp, and a signature).

A strategy usually implements exactly one of the two credential
capabilities. :class:`~apibase.client.ApiClient` checks which ones an
authenticator provides and calls them only once the session is signed in.

To add a strategy, subclass :class:`Authenticator` together with one
capability, set :attr:`~Authenticator.auth_type`, and register it with
:class:`~apibase.auth.registry.AuthRegistry` if it should be buildable
from an :class:`~apibase.models.AuthConfig`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from apibase.models import AuthConfig
from apibase.request import OutboundRequest, QueryParameterList


class Authenticator(ABC):
    """Base class for authentication strategies.

    Subclasses provide an :attr:`auth_type` identifier and, when they need
    to establish a session or fetch a token, override :meth:`sign_in`.
    """

    @property
    @abstractmethod
    def auth_type(self) -> str:
        """Return the unique identifier for this strategy (e.g. ``"bearer"``)."""
        ...

    async def sign_in(self) -> None:
        """Establish the state credential injection relies on.

        Called at most once per successful sign-in, with no arguments. It
        may perform network calls, including calls through the client that
        owns it; those go out without credentials. Raising marks the
        sign-in as failed and the next call retries it.
        """
        return None

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> Authenticator:
        """Build an instance from the auth section of a client config."""
        raise NotImplementedError(f"{cls.__name__} cannot be built from config")

    @classmethod
    def validate_config(cls, auth_config: AuthConfig) -> list[str]:
        """Validate *auth_config* before use.

        Returns:
            Human-readable error messages; empty when the config is valid.
        """
        return []


class HeaderCredentials(ABC):
    """Capability: add or modify headers on the in-flight request."""

    @abstractmethod
    def apply_headers(self, request: OutboundRequest) -> None:
        """Mutate ``request.headers`` in place."""
        ...


class QueryCredentials(ABC):
    """Capability: append signed parameters to the request's query string."""

    @abstractmethod
    def apply_query(self, params: QueryParameterList) -> None:
        """Append parameters to *params*; the client appends them to the URL in order."""
        ...


class NoAuth(Authenticator):
    """Strategy for public APIs: sign-in is a no-op and nothing is injected."""

    @property
    def auth_type(self) -> str:
        return "none"

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> NoAuth:
        return cls()
