"""OAuth2 Client Credentials authentication.

:class:`OAuth2ClientCredentialsAuth` performs the non-interactive Client
Credentials grant (:rfc:`6749` section 4.4) during sign-in, exchanging a
``client_id`` and ``client_secret`` for an access token at ``token_url``,
and then sends that token as ``Authorization: Bearer <token>``.

The token request uses its own short-lived :class:`httpx.AsyncClient`, so
it never passes through the session latch of the API client it serves.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx

from apibase.auth.base import Authenticator, HeaderCredentials
from apibase.config import resolve_credential
from apibase.exceptions import AuthError
from apibase.models import AuthConfig
from apibase.output import get_output
from apibase.request import OutboundRequest


class OAuth2ClientCredentialsAuth(Authenticator, HeaderCredentials):
    """Fetch a client-credentials token at sign-in and send it as a bearer header.

    Args:
        token_url: The authorization server's token endpoint.
        client_id_source: Credential source for the client id.
        client_secret_source: Credential source for the client secret.
        scopes: Scopes requested, sent space-separated.
        timeout: Token request timeout in seconds.
        transport: Optional httpx transport (tests pass a ``MockTransport``).
    """

    def __init__(
        self,
        token_url: str,
        client_id_source: str,
        client_secret_source: str,
        scopes: Sequence[str] = (),
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.token_url = token_url
        self._client_id_source = client_id_source
        self._client_secret_source = client_secret_source
        self.scopes = list(scopes)
        self._timeout = timeout
        self._transport = transport
        self._access_token: Optional[str] = None

    @property
    def auth_type(self) -> str:
        return "oauth2_client_credentials"

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    async def sign_in(self) -> None:
        token_data = await self._fetch_token()
        self._access_token = token_data["access_token"]

    def apply_headers(self, request: OutboundRequest) -> None:
        if self._access_token:
            request.headers["Authorization"] = f"Bearer {self._access_token}"

    async def _fetch_token(self) -> dict[str, Any]:
        """POST the client-credentials grant and return the token response.

        Raises:
            AuthError: If the request fails, the server rejects it, or the
                response lacks ``access_token``.
        """
        data: dict[str, str] = {
            "grant_type": "client_credentials",
            "client_id": resolve_credential(self._client_id_source),
            "client_secret": resolve_credential(self._client_secret_source),
        }
        if self.scopes:
            data["scope"] = " ".join(self.scopes)

        get_output().debug(f"Requesting client-credentials token from {self.token_url}")
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as http:
                response = await http.post(
                    self.token_url,
                    data=data,
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
                token_data: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthError(
                f"Token request failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthError(f"Token request failed: {exc}") from exc
        except ValueError as exc:
            raise AuthError(f"Token response is not valid JSON: {exc}") from exc

        if not isinstance(token_data, dict) or "access_token" not in token_data:
            raise AuthError("Token response missing 'access_token' field")
        return token_data

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> OAuth2ClientCredentialsAuth:
        return cls(
            token_url=auth_config.token_url or "",
            client_id_source=auth_config.client_id_source or "",
            client_secret_source=auth_config.client_secret_source or "",
            scopes=auth_config.scopes,
        )

    @classmethod
    def validate_config(cls, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.token_url:
            errors.append("OAuth2 client_credentials requires 'token_url'")
        if not auth_config.client_id_source:
            errors.append("OAuth2 client_credentials requires 'client_id_source'")
        if not auth_config.client_secret_source:
            errors.append("OAuth2 client_credentials requires 'client_secret_source'")
        return errors
