"""Bearer token authentication.

:class:`BearerAuth` resolves a pre-existing token from its ``source``
(e.g. ``env:MY_TOKEN``, ``file:~/.token``) at sign-in and injects it as an
``Authorization: Bearer <token>`` header. It performs no token exchange;
see :mod:`apibase.auth.oauth2` for the client-credentials grant.
"""

from __future__ import annotations

from typing import Optional

from apibase.auth.base import Authenticator, HeaderCredentials
from apibase.config import resolve_credential
from apibase.models import AuthConfig
from apibase.request import OutboundRequest


class BearerAuth(Authenticator, HeaderCredentials):
    """Send a bearer token in the ``Authorization`` header.

    Args:
        source: Credential source resolved at sign-in.
        token: A literal token; when given, *source* is ignored.
    """

    def __init__(self, source: Optional[str] = None, token: Optional[str] = None) -> None:
        self._source = source
        self._token = token

    @property
    def auth_type(self) -> str:
        return "bearer"

    @property
    def token(self) -> Optional[str]:
        return self._token

    async def sign_in(self) -> None:
        if self._token is None and self._source is not None:
            self._token = resolve_credential(self._source)

    def apply_headers(self, request: OutboundRequest) -> None:
        if self._token:
            request.headers["Authorization"] = f"Bearer {self._token}"

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> BearerAuth:
        return cls(source=auth_config.source)

    @classmethod
    def validate_config(cls, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.source:
            errors.append("Bearer auth requires a 'source' for the token")
        return errors
