"""Signed query-string authentication.

:class:`SignedQueryAuth` appends three parameters to every request URL:
the API key, a Unix timestamp, and an HMAC-SHA256 signature over
``api_key + timestamp`` keyed with a shared secret. Servers recompute the
signature and reject stale timestamps, so a leaked URL is only replayable
within the server's tolerance window.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from collections.abc import Callable
from typing import Optional

from apibase.auth.base import Authenticator, QueryCredentials
from apibase.config import resolve_credential
from apibase.models import AuthConfig
from apibase.request import QueryParameterList


def sign(api_key: str, timestamp: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``api_key + timestamp`` keyed with *secret*."""
    message = f"{api_key}{timestamp}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class SignedQueryAuth(Authenticator, QueryCredentials):
    """Append ``api_key``, ``timestamp`` and ``signature`` query parameters.

    Args:
        key_source: Credential source for the API key.
        secret_source: Credential source for the signing secret.
        key_param: Name of the API key parameter.
        clock: Returns the current Unix time; injectable for tests.
    """

    def __init__(
        self,
        key_source: str,
        secret_source: str,
        key_param: str = "api_key",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._key_source = key_source
        self._secret_source = secret_source
        self.key_param = key_param
        self._clock = clock
        self._key: Optional[str] = None
        self._secret: Optional[str] = None

    @property
    def auth_type(self) -> str:
        return "signed_query"

    async def sign_in(self) -> None:
        self._key = resolve_credential(self._key_source)
        self._secret = resolve_credential(self._secret_source)

    def apply_query(self, params: QueryParameterList) -> None:
        if self._key is None or self._secret is None:
            return
        timestamp = str(int(self._clock()))
        params.add(self.key_param, self._key)
        params.add("timestamp", timestamp)
        params.add("signature", sign(self._key, timestamp, self._secret), encode=False)

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> SignedQueryAuth:
        return cls(
            key_source=auth_config.source,
            secret_source=auth_config.secret_source or "",
            key_param=auth_config.param_name or "api_key",
        )

    @classmethod
    def validate_config(cls, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.source:
            errors.append("Signed query auth requires a 'source' for the API key")
        if not auth_config.secret_source:
            errors.append("Signed query auth requires a 'secret_source' for the signing secret")
        return errors
