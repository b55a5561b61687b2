"""Auth registry -- maps auth type strings to authenticator classes.

:class:`AuthRegistry` turns the ``auth`` section of a
:class:`~apibase.models.ClientConfig` into a ready
:class:`~apibase.auth.base.Authenticator`. The CLI uses it; library callers
usually construct an authenticator directly and pass it to
:class:`~apibase.client.ApiClient`.

For most use cases, call :func:`create_authenticator`, which uses a
registry pre-loaded with every built-in strategy.
"""

from __future__ import annotations

from typing import Optional

from apibase.auth.api_key import ApiKeyAuth
from apibase.auth.base import Authenticator, NoAuth
from apibase.auth.bearer import BearerAuth
from apibase.auth.oauth2 import OAuth2ClientCredentialsAuth
from apibase.auth.signed_query import SignedQueryAuth
from apibase.exceptions import AuthError, ConfigError
from apibase.models import AuthConfig


class AuthRegistry:
    """Registry of authenticator classes keyed by auth type.

    Example::

        registry = AuthRegistry()
        registry.register("bearer", BearerAuth)
        authenticator = registry.create(AuthConfig(type="bearer", source="env:TOKEN"))
    """

    def __init__(self) -> None:
        self._types: dict[str, type[Authenticator]] = {}

    def register(self, auth_type: str, cls: type[Authenticator]) -> None:
        """Register *cls* for *auth_type*, replacing any previous entry."""
        self._types[auth_type] = cls

    def get(self, auth_type: str) -> type[Authenticator]:
        """Look up the class registered for *auth_type*.

        Raises:
            AuthError: If nothing is registered for *auth_type*.
        """
        cls = self._types.get(auth_type)
        if cls is None:
            available = ", ".join(sorted(self._types)) or "(none)"
            raise AuthError(
                f"No authenticator registered for type '{auth_type}'. "
                f"Available types: {available}"
            )
        return cls

    def create(self, auth_config: Optional[AuthConfig]) -> Authenticator:
        """Validate *auth_config* and build the matching authenticator.

        ``None`` yields :class:`~apibase.auth.base.NoAuth`.

        Raises:
            AuthError: If the type is unknown.
            ConfigError: If the config fails the class's validation.
        """
        if auth_config is None:
            return NoAuth()
        cls = self.get(auth_config.type)
        errors = cls.validate_config(auth_config)
        if errors:
            raise ConfigError(
                f"Invalid '{auth_config.type}' auth config: " + "; ".join(errors)
            )
        return cls.from_config(auth_config)

    def list_types(self) -> list[str]:
        return sorted(self._types)


def create_default_registry() -> AuthRegistry:
    """Create an :class:`AuthRegistry` with every built-in strategy.

    - ``none`` -- public APIs.
    - ``bearer`` -- static bearer token.
    - ``api_key`` -- API key in a header or query parameter.
    - ``signed_query`` -- API key, timestamp, and HMAC signature in the query.
    - ``oauth2_client_credentials`` -- token fetched at sign-in.
    """
    registry = AuthRegistry()
    registry.register("none", NoAuth)
    registry.register("bearer", BearerAuth)
    registry.register("api_key", ApiKeyAuth)
    registry.register("signed_query", SignedQueryAuth)
    registry.register("oauth2_client_credentials", OAuth2ClientCredentialsAuth)
    return registry


def create_authenticator(auth_config: Optional[AuthConfig]) -> Authenticator:
    """Build an authenticator for *auth_config* with the default registry."""
    return create_default_registry().create(auth_config)
