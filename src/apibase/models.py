"""Canonical enums and Pydantic models shared across apibase.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Pipeline enums** -- passed explicitly by callers of the request pipeline:
    :class:`HttpMethod`, :class:`ContentKind`, :class:`ResponseShape`, and
    the :class:`SessionState` reported by the session latch.

**Configuration models** -- loaded from JSON config files or built in code:
    :class:`AuthConfig` and :class:`ClientConfig`.

All models use Pydantic v2. :class:`AuthConfig` uses ``extra="allow"`` so
that authenticator-specific keys are preserved in ``model_extra``.
"""

from __future__ import annotations

import codecs
import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Pipeline enums ---


class HttpMethod(str, enum.Enum):
    """HTTP methods the request builder accepts.

    ``GET`` never carries a body; building a GET request with a non-empty
    payload raises :class:`~apibase.exceptions.ArgumentError`.
    """

    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"


class ContentKind(str, enum.Enum):
    """Content kinds a request body can be declared as.

    ``UNDEFINED`` sends no ``Content-Type`` header. ``AUTO`` defers to the
    client's default kind, or, when that default is itself ``UNDEFINED``, to
    the structural kind of the payload (JSON value or XML element).
    """

    UNDEFINED = "undefined"
    AUTO = "auto"
    JSON = "json"
    URL_ENCODED = "url_encoded"
    XML = "xml"

    @property
    def mime_type(self) -> Optional[str]:
        """The wire ``Content-Type`` for this kind, or ``None`` when no header is sent.

        ``AUTO`` has no wire form of its own and must be resolved first with
        :func:`~apibase.request.resolve_content_kind`.
        """
        return _MIME_TYPES.get(self)


_MIME_TYPES: dict[ContentKind, str] = {
    ContentKind.JSON: "application/json",
    ContentKind.URL_ENCODED: "application/x-www-form-urlencoded",
    ContentKind.XML: "application/xml",
}


class ResponseShape(str, enum.Enum):
    """Decode targets a caller can request from the response interpreter.

    ``JSON`` accepts any JSON value (and is the shape used for typed
    decoding into a Pydantic model); ``JSON_OBJECT`` and ``JSON_ARRAY`` also
    require the top-level value to be an object or an array.
    """

    BYTES = "bytes"
    TEXT = "text"
    JSON = "json"
    JSON_OBJECT = "json_object"
    JSON_ARRAY = "json_array"
    XML = "xml"


class SessionState(str, enum.Enum):
    """Sign-in state tracked by :class:`~apibase.session.SessionLatch`."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


# --- Configuration models ---


class AuthConfig(BaseModel):
    """Authentication section of a :class:`ClientConfig`.

    The ``type`` field selects the authenticator registered in
    :class:`~apibase.auth.registry.AuthRegistry`; the remaining fields
    supply authenticator-specific parameters. Credential fields hold
    *sources* (``env:VAR``, ``file:/path``, ``prompt``, ``value:SECRET``)
    resolved at sign-in time by :func:`~apibase.config.resolve_credential`.

    Example::

        AuthConfig(type="api_key", location="query", param_name="key",
                   source="env:MAPS_API_KEY")
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(
        default="none",
        description="Auth type: none, bearer, api_key, signed_query, "
        "oauth2_client_credentials",
    )
    source: str = Field(
        default="prompt",
        description="Credential source: env:VAR, file:/path, prompt, value:SECRET",
    )
    header: Optional[str] = Field(
        default=None, description="Header name for api_key auth"
    )
    param_name: Optional[str] = Field(
        default=None, description="Query parameter name for api_key auth"
    )
    location: str = Field(
        default="header", description="Where api_key auth sends the key: header or query"
    )
    secret_source: Optional[str] = Field(
        default=None, description="Signing secret source for signed_query auth"
    )
    # OAuth2 client credentials
    token_url: Optional[str] = None
    client_id_source: Optional[str] = None
    client_secret_source: Optional[str] = None
    scopes: list[str] = Field(default_factory=list)


class ClientConfig(BaseModel):
    """Settings for one :class:`~apibase.client.ApiClient`.

    The root URL is normalised exactly once, here: every trailing ``/`` is
    stripped, and request paths are appended to the result verbatim.

    See Also:
        :func:`~apibase.config.resolve_config`: Build one from config files
        and environment variables.
    """

    root_url: str = Field(description="Root URL every request path is appended to")
    encoding: str = Field(
        default="utf-8", description="Character encoding for text bodies"
    )
    default_content_kind: ContentKind = Field(
        default=ContentKind.UNDEFINED,
        description="Content kind used when a request asks for AUTO",
    )
    timeout: Optional[float] = Field(
        default=30.0, description="Per-call deadline in seconds (None disables)"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Static headers sent with every request"
    )
    auth: Optional[AuthConfig] = None

    @field_validator("root_url")
    @classmethod
    def _normalise_root_url(cls, value: str) -> str:
        normalised = value.strip().rstrip("/")
        if not normalised:
            raise ValueError("root_url must not be empty")
        return normalised

    @field_validator("encoding")
    @classmethod
    def _check_encoding(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError as exc:
            raise ValueError(f"unknown encoding '{value}'") from exc
        return value

    @field_validator("default_content_kind")
    @classmethod
    def _reject_auto_default(cls, value: ContentKind) -> ContentKind:
        if value is ContentKind.AUTO:
            raise ValueError("default_content_kind cannot be AUTO")
        return value

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("timeout must be positive")
        return value
