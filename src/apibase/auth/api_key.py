"""API key authentication -- header or query parameter placement.

Two strategies share a sign-in step that resolves the key from its
``source``:

* :class:`ApiKeyHeaderAuth` sends the key as a request header
  (default ``X-API-Key``).
* :class:`ApiKeyQueryAuth` appends the key as a query parameter
  (default ``api_key``).

:meth:`ApiKeyAuth.from_config` picks one from ``AuthConfig.location``;
:class:`ApiKeyAuth` is what :class:`~apibase.auth.registry.AuthRegistry`
registers for the ``api_key`` type.
"""

from __future__ import annotations

from typing import Optional

from apibase.auth.base import Authenticator, HeaderCredentials, QueryCredentials
from apibase.config import resolve_credential
from apibase.models import AuthConfig
from apibase.request import OutboundRequest, QueryParameterList

_LOCATIONS = ("header", "query")


class ApiKeyAuth(Authenticator):
    """Shared sign-in for both placements; build one with :meth:`from_config`."""

    def __init__(self, source: str) -> None:
        self._source = source
        self._key: Optional[str] = None

    @property
    def auth_type(self) -> str:
        return "api_key"

    async def sign_in(self) -> None:
        self._key = resolve_credential(self._source)

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> ApiKeyAuth:
        if auth_config.location == "query":
            return ApiKeyQueryAuth.from_config(auth_config)
        return ApiKeyHeaderAuth.from_config(auth_config)

    @classmethod
    def validate_config(cls, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.source:
            errors.append("API key auth requires a 'source' for the credential")
        if auth_config.location not in _LOCATIONS:
            errors.append(
                f"Invalid location '{auth_config.location}': must be 'header' or 'query'"
            )
        return errors


class ApiKeyHeaderAuth(ApiKeyAuth, HeaderCredentials):
    """Send the API key in a header."""

    def __init__(self, source: str, header: str = "X-API-Key") -> None:
        super().__init__(source)
        self.header = header

    def apply_headers(self, request: OutboundRequest) -> None:
        if self._key is not None:
            request.headers[self.header] = self._key

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> ApiKeyHeaderAuth:
        return cls(auth_config.source, auth_config.header or "X-API-Key")


class ApiKeyQueryAuth(ApiKeyAuth, QueryCredentials):
    """Send the API key as a query parameter."""

    def __init__(self, source: str, param_name: str = "api_key") -> None:
        super().__init__(source)
        self.param_name = param_name

    def apply_query(self, params: QueryParameterList) -> None:
        if self._key is not None:
            params.add(self.param_name, self._key)

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> ApiKeyQueryAuth:
        return cls(auth_config.source, auth_config.param_name or "api_key")
