"""Asynchronous API client -- the request/response pipeline.

:class:`ApiClient` wires the pipeline stages together for every call::

    RequestBuilder.build     resolve URL, content kind, body; reject GET bodies
    SessionLatch             sign in once, lazily, before the first call
    credential capabilities  query parameters, then headers (signed in only)
    httpx.AsyncClient.send   stream the response, read it, always close it
    response.interpret       200/201 check, decode into the requested shape

Concrete clients subclass it (or wrap it) to add endpoint methods and pass
an :class:`~apibase.auth.base.Authenticator` for their API::

    class WeatherClient(ApiClient):
        async def forecast(self, city: str) -> dict:
            return await self.get(f"/forecast/{city}", shape=ResponseShape.JSON_OBJECT)

    async with WeatherClient("https://api.weather.test/", ApiKeyQueryAuth("env:WX_KEY")) as wx:
        data = await wx.forecast("oslo")

The core never retries. Each call runs under a deadline (the config's
``timeout`` unless the call overrides it) that covers sign-in, the send, and
the body read; cancelling the calling task aborts all three.
"""

from __future__ import annotations

import asyncio
import codecs
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from apibase.auth.base import Authenticator, HeaderCredentials, NoAuth, QueryCredentials
from apibase.exceptions import ArgumentError, ConnectionError_, RequestTimeoutError
from apibase.models import ClientConfig, ContentKind, HttpMethod, ResponseShape, SessionState
from apibase.output import get_output
from apibase.request import (
    OutboundRequest,
    QueryParameterList,
    RequestBuilder,
    append_query,
    coerce_content_kind,
)
from apibase.response import check_decodable, interpret
from apibase.session import SessionLatch

_UNSET: Any = object()


@contextmanager
def _translate_transport_errors(request: OutboundRequest) -> Iterator[None]:
    """Map httpx network failures onto the apibase error taxonomy."""
    try:
        yield
    except httpx.TimeoutException as exc:
        raise RequestTimeoutError(
            f"{request.method.value} {request.url} timed out: {exc}"
        ) from exc
    except httpx.TransportError as exc:
        raise ConnectionError_(
            f"{request.method.value} {request.url} failed: {exc}"
        ) from exc


class ApiClient:
    """Base class for typed clients against an HTTP JSON/XML API.

    Args:
        config: Client settings, or just the root URL as a string.
        authenticator: Sign-in hook plus credential capability. ``None``
            means a public API (:class:`~apibase.auth.base.NoAuth`).
        transport: Optional httpx transport (tests pass a ``MockTransport``).

    Raises:
        ArgumentError: If *config* is missing or invalid.
    """

    def __init__(
        self,
        config: ClientConfig | str,
        authenticator: Optional[Authenticator] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if config is None:
            raise ArgumentError("config is required")
        if isinstance(config, str):
            try:
                config = ClientConfig(root_url=config)
            except ValidationError as exc:
                raise ArgumentError(f"Invalid root URL: {exc}") from exc

        self._config = config
        self._authenticator = authenticator if authenticator is not None else NoAuth()
        self._builder = RequestBuilder(
            config.root_url,
            encoding=config.encoding,
            default_content_kind=config.default_content_kind,
            headers=config.headers,
        )
        self._latch = SessionLatch(self._authenticator.sign_in)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def root_url(self) -> str:
        return self._builder.root_url

    @property
    def encoding(self) -> str:
        return self._builder.encoding

    @encoding.setter
    def encoding(self, value: str) -> None:
        if not value:
            raise ArgumentError("encoding is required")
        try:
            codecs.lookup(value)
        except LookupError:
            raise ArgumentError(f"Unknown encoding: {value!r}") from None
        self._builder.encoding = value

    @property
    def default_content_kind(self) -> ContentKind:
        return self._builder.default_content_kind

    @default_content_kind.setter
    def default_content_kind(self, value: ContentKind | str) -> None:
        kind = coerce_content_kind(value)
        if kind is ContentKind.AUTO:
            raise ArgumentError("The default content kind cannot be AUTO")
        self._builder.default_content_kind = kind

    @property
    def authenticator(self) -> Authenticator:
        return self._authenticator

    @property
    def session_state(self) -> SessionState:
        return self._latch.state

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> ApiClient:
        self._http()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool. The client can be reused afterwards."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                verify=self._config.verify_ssl,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    async def create_request(
        self,
        path: str,
        method: HttpMethod | str,
        payload: Any = None,
        content_kind: ContentKind | str = ContentKind.UNDEFINED,
    ) -> OutboundRequest:
        """Build a request, sign in if needed, and attach credentials.

        Validation happens before sign-in, so an invalid request never
        causes network traffic.

        Raises:
            ArgumentError: For an invalid method or content kind, or a GET
                request with a body.
        """
        outbound = self._builder.build(path, method, payload, content_kind)
        await self._latch.ensure_signed_in()
        if self._latch.is_signed_in:
            self._apply_credentials(outbound)
        return outbound

    def _apply_credentials(self, outbound: OutboundRequest) -> None:
        auth = self._authenticator
        if isinstance(auth, QueryCredentials):
            params = QueryParameterList()
            auth.apply_query(params)
            outbound.url = append_query(outbound.url, params)
        if isinstance(auth, HeaderCredentials):
            auth.apply_headers(outbound)

    async def send(
        self,
        outbound: OutboundRequest,
        shape: ResponseShape | str = ResponseShape.JSON,
        model: Optional[Any] = None,
    ) -> Any:
        """Send *outbound* and decode the response into *shape*.

        The response is streamed, read in full, and closed on every exit
        path before interpretation.

        Raises:
            TransportError: The status was not 200 or 201.
            ParseError: The body does not match *shape* / *model*.
            UnsupportedShapeError: *shape* is not a supported shape, or
                *model* is given with a non-JSON shape. Raised before sending.
            ConnectionError_: The request could not be sent or read.
        """
        shape = check_decodable(shape, model)
        output = get_output()
        output.debug(f"{outbound.method.value} {outbound.url}")

        with _translate_transport_errors(outbound):
            response = await self._http().send(outbound.to_httpx(), stream=True)
            try:
                body = await response.aread()
            finally:
                await response.aclose()

        output.debug(f"HTTP {response.status_code} {response.reason_phrase} ({len(body)} bytes)")
        return interpret(
            response.status_code,
            body,
            shape,
            encoding=self.encoding,
            model=model,
            reason=response.reason_phrase,
        )

    async def request(
        self,
        path: str,
        method: HttpMethod | str = HttpMethod.GET,
        payload: Any = None,
        content_kind: ContentKind | str = ContentKind.AUTO,
        shape: ResponseShape | str = ResponseShape.JSON,
        model: Optional[Any] = None,
        timeout: Optional[float] = _UNSET,
    ) -> Any:
        """Run one call through the whole pipeline.

        Args:
            path: Path appended verbatim to the root URL (may carry a query).
            method: HTTP method.
            payload: Request body in any shape :mod:`apibase.request` accepts.
            content_kind: Declared content kind; ``AUTO`` uses the client
                default or infers it from *payload*.
            shape: How to decode the response body.
            model: Optional type for typed JSON decoding.
            timeout: Deadline in seconds for this call; defaults to the
                config's ``timeout``. ``None`` disables it.

        Returns:
            The decoded response (see :func:`apibase.response.decode`).

        Raises:
            UnsupportedShapeError: Invalid *shape* / *model* combination,
                raised before sign-in or any network traffic.
            RequestTimeoutError: The deadline expired.
        """
        shape = check_decodable(shape, model)
        deadline = self._config.timeout if timeout is _UNSET else timeout

        async def _call() -> Any:
            outbound = await self.create_request(path, method, payload, content_kind)
            return await self.send(outbound, shape, model)

        if deadline is None:
            return await _call()
        try:
            return await asyncio.wait_for(_call(), deadline)
        except asyncio.TimeoutError as exc:
            label = getattr(method, "value", method)
            raise RequestTimeoutError(
                f"{label} {path} did not complete within {deadline}s"
            ) from exc

    async def get(self, path: str, **kwargs: Any) -> Any:
        """Send a GET request. Keyword arguments are forwarded to :meth:`request`."""
        return await self.request(path, HttpMethod.GET, **kwargs)

    async def put(self, path: str, payload: Any = None, **kwargs: Any) -> Any:
        """Send a PUT request with an optional *payload*."""
        return await self.request(path, HttpMethod.PUT, payload, **kwargs)

    async def post(self, path: str, payload: Any = None, **kwargs: Any) -> Any:
        """Send a POST request with an optional *payload*."""
        return await self.request(path, HttpMethod.POST, payload, **kwargs)

    async def delete(self, path: str, payload: Any = None, **kwargs: Any) -> Any:
        """Send a DELETE request with an optional *payload*."""
        return await self.request(path, HttpMethod.DELETE, payload, **kwargs)
