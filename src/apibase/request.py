"""Request building -- URL composition, content-kind resolution, and body serialization.

:class:`RequestBuilder` turns a relative path, a method, and a payload into
an :class:`OutboundRequest` without touching the network. It does not sign
in or attach credentials; :meth:`~apibase.client.ApiClient.create_request`
runs the builder first, then the session latch, then the credential hooks.

Accepted payload shapes:

* ``bytes`` / ``bytearray`` / ``memoryview`` -- sent unchanged.
* ``str`` -- encoded with the client's character encoding.
* JSON values (``dict``, ``list``, ``tuple``, Pydantic models) -- dumped
  compactly. A mapping sent as ``URL_ENCODED`` is form-encoded instead.
* XML (:class:`xml.etree.ElementTree.Element` or ``ElementTree``) --
  serialized without added whitespace or declaration.
* ``None`` -- empty body.
* anything else -- ``str(payload)``.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from typing import Any, Optional
from urllib.parse import quote_plus, urlencode
from xml.etree import ElementTree

import httpx
from pydantic import BaseModel

from apibase.exceptions import ArgumentError
from apibase.models import ContentKind, HttpMethod


class QueryParameterList:
    """Ordered ``(key, value)`` pairs appended to a request URL.

    Insertion order is the order the pairs appear in the query string. Each
    pair is percent-encoded when added unless ``encode=False`` is passed,
    for values that are already encoded (e.g. a pre-computed signature).

    Example::

        params = QueryParameterList()
        params.add("api_key", "a b")
        params.add("sig", "abc%3D", encode=False)
        list(params)  # [("api_key", "a+b"), ("sig", "abc%3D")]
    """

    def __init__(self) -> None:
        self._pairs: list[tuple[str, str]] = []

    def add(self, key: str, value: str, encode: bool = True) -> None:
        if encode:
            key = quote_plus(key)
            value = quote_plus(value)
        self._pairs.append((key, value))

    def __len__(self) -> int:
        return len(self._pairs)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._pairs)

    def __getitem__(self, index: int) -> tuple[str, str]:
        return self._pairs[index]

    def __repr__(self) -> str:
        return f"QueryParameterList({self._pairs!r})"


def append_query(url: str, params: QueryParameterList) -> str:
    """Append *params* to *url*, keeping any query string already present.

    Starts the query with ``?`` when *url* has none, otherwise continues it
    with ``&``. Pairs keep their list order.

    Args:
        url: Absolute or relative URL, possibly with a query string.
        params: Pairs to append (already encoded by :meth:`QueryParameterList.add`).

    Returns:
        The URL with the parameters appended; *url* itself when *params* is empty.
    """
    if len(params) == 0:
        return url
    separator = "&" if "?" in url else "?"
    return url + separator + "&".join(f"{key}={value}" for key, value in params)


class OutboundRequest:
    """A fully built request, owned by a single call.

    Headers are an :class:`httpx.Headers`, so names match case-insensitively
    and setting one replaces every existing spelling of it. They may be
    mutated by :class:`~apibase.auth.base.HeaderCredentials`
    and the URL extended by query credentials before
    :meth:`to_httpx` hands it to the transport.

    Args:
        url: Absolute URL (root URL + relative path).
        method: HTTP method.
        content_kind: Resolved content kind; never ``AUTO``.
        body: Serialized body bytes (empty for no body).
        headers: Initial headers; ``Content-Type`` is added from *content_kind*.
    """

    def __init__(
        self,
        url: str,
        method: HttpMethod,
        content_kind: ContentKind = ContentKind.UNDEFINED,
        body: bytes = b"",
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.url = url
        self.method = method
        self.content_kind = content_kind
        self.body = body
        self.headers = httpx.Headers(headers)
        if content_kind.mime_type is not None:
            self.headers["Content-Type"] = content_kind.mime_type

    @property
    def content_type(self) -> Optional[str]:
        """The ``Content-Type`` header that will be sent, if any."""
        return self.headers.get("Content-Type")

    def to_httpx(self) -> httpx.Request:
        """Convert to an :class:`httpx.Request` ready for ``AsyncClient.send``."""
        return httpx.Request(
            self.method.value,
            self.url,
            headers=self.headers,
            content=self.body or None,
        )

    def __repr__(self) -> str:
        return (
            f"OutboundRequest({self.method.value} {self.url}, "
            f"content_type={self.content_type!r}, body={len(self.body)} bytes)"
        )


# ------------------------------------------------------------------ #
# Content kinds and payloads
# ------------------------------------------------------------------ #


def coerce_method(method: HttpMethod | str) -> HttpMethod:
    """Return *method* as an :class:`HttpMethod`, accepting case-insensitive strings."""
    if isinstance(method, HttpMethod):
        return method
    try:
        return HttpMethod(str(method).upper())
    except ValueError:
        raise ArgumentError(f"Unknown request method: {method!r}") from None


def coerce_content_kind(kind: ContentKind | str) -> ContentKind:
    """Return *kind* as a :class:`ContentKind`, accepting its string value."""
    if isinstance(kind, ContentKind):
        return kind
    try:
        return ContentKind(str(kind).lower())
    except ValueError:
        raise ArgumentError(f"Unknown content kind: {kind!r}") from None


def _is_xml(payload: Any) -> bool:
    return isinstance(payload, (ElementTree.Element, ElementTree.ElementTree))


def _is_json_value(payload: Any) -> bool:
    return isinstance(payload, (dict, list, tuple, BaseModel))


def payload_kind(payload: Any) -> ContentKind:
    """Infer the structural content kind of *payload*.

    JSON values map to ``JSON``, XML elements to ``XML``, and everything
    else (bytes, text, ``None``, arbitrary objects) to ``UNDEFINED``.
    """
    if _is_xml(payload):
        return ContentKind.XML
    if _is_json_value(payload):
        return ContentKind.JSON
    return ContentKind.UNDEFINED


def resolve_content_kind(
    requested: ContentKind | str,
    default: ContentKind,
    payload: Any = None,
) -> ContentKind:
    """Resolve the content kind actually sent for a request.

    Args:
        requested: Kind asked for by the caller.
        default: The client's default kind (never ``AUTO``).
        payload: The payload, used for inference when both *requested* is
            ``AUTO`` and *default* is ``UNDEFINED``.

    Returns:
        A concrete kind; ``UNDEFINED`` means no ``Content-Type`` header.
    """
    kind = coerce_content_kind(requested)
    if kind is not ContentKind.AUTO:
        return kind
    if default is not ContentKind.UNDEFINED:
        return default
    return payload_kind(payload)


def serialize_payload(
    payload: Any,
    encoding: str = "utf-8",
    content_kind: ContentKind = ContentKind.UNDEFINED,
) -> bytes:
    """Serialize *payload* to request body bytes.

    Args:
        payload: Any accepted payload shape (see module docstring).
        encoding: Character encoding applied to text forms.
        content_kind: The resolved kind; ``URL_ENCODED`` form-encodes mappings.

    Returns:
        The body bytes; ``b""`` for ``None``.
    """
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    if isinstance(payload, str):
        return payload.encode(encoding)
    if _is_xml(payload):
        if isinstance(payload, ElementTree.ElementTree):
            payload = payload.getroot()
        return ElementTree.tostring(payload, encoding="unicode").encode(encoding)
    if content_kind is ContentKind.URL_ENCODED and isinstance(payload, Mapping):
        return urlencode(payload, doseq=True).encode(encoding)
    if isinstance(payload, BaseModel):
        return payload.model_dump_json().encode(encoding)
    if _is_json_value(payload):
        text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        return text.encode(encoding)
    return str(payload).encode(encoding)


class RequestBuilder:
    """Build :class:`OutboundRequest` objects against a fixed root URL.

    Args:
        root_url: Root URL; trailing slashes are stripped once, here.
        encoding: Character encoding for text payloads.
        default_content_kind: Kind used when a request asks for ``AUTO``.
        headers: Static headers copied into every request.

    Raises:
        ArgumentError: If *root_url* is empty or *default_content_kind* is ``AUTO``.
    """

    def __init__(
        self,
        root_url: str,
        encoding: str = "utf-8",
        default_content_kind: ContentKind = ContentKind.UNDEFINED,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        if not root_url:
            raise ArgumentError("root_url is required")
        default_content_kind = coerce_content_kind(default_content_kind)
        if default_content_kind is ContentKind.AUTO:
            raise ArgumentError("The default content kind cannot be AUTO")
        self.root_url = root_url.rstrip("/")
        self.encoding = encoding
        self.default_content_kind = default_content_kind
        self.headers = dict(headers or {})

    def build(
        self,
        path: str,
        method: HttpMethod | str,
        payload: Any = None,
        content_kind: ContentKind | str = ContentKind.UNDEFINED,
    ) -> OutboundRequest:
        """Build a request for ``root_url + path``.

        Raises:
            ArgumentError: If *path* is ``None``, *method* or *content_kind*
                is not a known value, or a GET request would carry a body.
        """
        if path is None:
            raise ArgumentError("path is required")
        method = coerce_method(method)
        kind = resolve_content_kind(content_kind, self.default_content_kind, payload)
        body = serialize_payload(payload, self.encoding, kind)

        if body and method is HttpMethod.GET:
            raise ArgumentError(
                "Data cannot be transferred using the GET method. "
                "Embed data as query string."
            )

        return OutboundRequest(
            url=self.root_url + path,
            method=method,
            content_kind=kind,
            body=body,
            headers=self.headers,
        )
