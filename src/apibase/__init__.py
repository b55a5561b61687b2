"""apibase -- a reusable base for typed clients against HTTP JSON/XML APIs.

The package centralizes what every hand-written API client repeats: URL
composition against a root URL, lazy sign-in, credential injection through
headers or signed query parameters, request-body serialization, and
decoding responses into bytes, text, JSON, typed models, or XML.

A concrete client only declares its endpoints and picks an authenticator::

    from apibase import ApiClient, ResponseShape
    from apibase.auth import BearerAuth

    class TodoClient(ApiClient):
        async def todos(self) -> list:
            return await self.get("/todos", shape=ResponseShape.JSON_ARRAY)

Modules:
    client: The asynchronous request/response pipeline.
    request: URL, content-kind, and payload handling.
    response: Status classification and response decoding.
    session: The single-flight sign-in latch.
    auth: Authenticators and credential capabilities.
    models: Enums and Pydantic configuration models.
    config: XDG-aware configuration and credential resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    app: The ``apibase`` command-line interface.
"""

from apibase.client import ApiClient
from apibase.exceptions import (
    ApibaseError,
    ArgumentError,
    AuthError,
    ConfigError,
    ConnectionError_,
    ParseError,
    RequestTimeoutError,
    TransportError,
    UnsupportedShapeError,
)
from apibase.models import (
    AuthConfig,
    ClientConfig,
    ContentKind,
    HttpMethod,
    ResponseShape,
    SessionState,
)
from apibase.request import OutboundRequest, QueryParameterList

__version__ = "0.1.0"

__all__ = [
    "ApiClient",
    "ApibaseError",
    "ArgumentError",
    "AuthConfig",
    "AuthError",
    "ClientConfig",
    "ConfigError",
    "ConnectionError_",
    "ContentKind",
    "HttpMethod",
    "OutboundRequest",
    "ParseError",
    "QueryParameterList",
    "RequestTimeoutError",
    "ResponseShape",
    "SessionState",
    "TransportError",
    "UnsupportedShapeError",
]
