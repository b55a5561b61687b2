"""Response interpretation -- status classification and shape-driven decoding.

Only ``200 OK`` and ``201 Created`` count as success. Any other status
raises :class:`~apibase.exceptions.TransportError` carrying the response
body as text; nothing here retries.

On success the body is decoded into the :class:`~apibase.models.ResponseShape`
the caller asked for. An empty body decodes to ``None`` for every shape
except ``BYTES``, which returns ``b""``.

XML is parsed with :mod:`defusedxml` so that entity-expansion payloads from
an untrusted server are rejected rather than expanded.
"""

from __future__ import annotations

import json
from typing import Any, Optional
from xml.etree.ElementTree import ParseError as XMLSyntaxError

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as DefusedET
from pydantic import TypeAdapter, ValidationError

from apibase.exceptions import ParseError, TransportError, UnsupportedShapeError
from apibase.models import ResponseShape

SUCCESS_STATUSES = frozenset({200, 201})


def coerce_shape(shape: ResponseShape | str) -> ResponseShape:
    """Return *shape* as a :class:`ResponseShape`.

    Raises:
        UnsupportedShapeError: If *shape* is not one of the supported shapes.
    """
    if isinstance(shape, ResponseShape):
        return shape
    try:
        return ResponseShape(shape)
    except (ValueError, TypeError):
        raise UnsupportedShapeError(
            f"Responses cannot be decoded as {shape!r}; supported shapes: "
            + ", ".join(s.value for s in ResponseShape)
        ) from None


_JSON_SHAPES = frozenset(
    {ResponseShape.JSON, ResponseShape.JSON_OBJECT, ResponseShape.JSON_ARRAY}
)


def check_decodable(shape: ResponseShape | str, model: Optional[Any] = None) -> ResponseShape:
    """Coerce *shape* and check that *model*, if given, can be decoded from it.

    Called before a request is sent, so a bad combination never reaches the
    network.

    Raises:
        UnsupportedShapeError: *shape* is unknown, or *model* is given with
            a non-JSON shape.
    """
    shape = coerce_shape(shape)
    if model is not None and shape not in _JSON_SHAPES:
        raise UnsupportedShapeError(f"A model can only be decoded from JSON, not {shape.value}")
    return shape


def check_status(
    status_code: int,
    body: bytes,
    encoding: str = "utf-8",
    reason: str = "",
) -> None:
    """Raise :class:`TransportError` unless *status_code* is 200 or 201.

    The body is decoded with *encoding*, replacing undecodable bytes, so the
    error always carries the server's diagnostic text.
    """
    if status_code in SUCCESS_STATUSES:
        return
    text = body.decode(encoding, errors="replace") if body else ""
    raise TransportError(status_code, text, reason)


def _decode_text(body: bytes, encoding: str) -> str:
    try:
        return body.decode(encoding)
    except UnicodeDecodeError as exc:
        raise ParseError(f"Response body is not valid {encoding}: {exc}") from exc


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Response body is not valid JSON: {exc}") from exc


def decode(
    shape: ResponseShape | str,
    body: bytes,
    encoding: str = "utf-8",
    model: Optional[Any] = None,
) -> Any:
    """Decode a successful response *body* into the requested *shape*.

    Args:
        shape: Target shape.
        body: Raw response bytes.
        encoding: Character encoding for every text-based shape.
        model: Optional type for typed JSON decoding (a Pydantic model or
            any type :class:`pydantic.TypeAdapter` accepts). Only valid with
            the JSON shapes.

    Returns:
        ``bytes`` for BYTES, ``str`` for TEXT, a JSON value (or validated
        *model* instance) for the JSON shapes, an
        :class:`~xml.etree.ElementTree.Element` for XML; ``None`` for an
        empty body on every shape except BYTES.

    Raises:
        UnsupportedShapeError: *shape* is unknown, or *model* is given with
            a non-JSON shape.
        ParseError: The body does not conform to *shape* or *model*.
    """
    shape = check_decodable(shape, model)

    if shape is ResponseShape.BYTES:
        return body
    if not body:
        return None

    text = _decode_text(body, encoding)

    if shape is ResponseShape.TEXT:
        return text

    if shape is ResponseShape.XML:
        try:
            return DefusedET.fromstring(text)
        except (XMLSyntaxError, DefusedXmlException) as exc:
            raise ParseError(f"Response body is not valid XML: {exc}") from exc

    value = _parse_json(text)
    if shape is ResponseShape.JSON_OBJECT and not isinstance(value, dict):
        raise ParseError(f"Expected a JSON object, got {type(value).__name__}")
    if shape is ResponseShape.JSON_ARRAY and not isinstance(value, list):
        raise ParseError(f"Expected a JSON array, got {type(value).__name__}")

    if model is not None:
        try:
            return TypeAdapter(model).validate_python(value)
        except ValidationError as exc:
            name = getattr(model, "__name__", model)
            raise ParseError(f"Response does not match {name}: {exc}") from exc
    return value


def interpret(
    status_code: int,
    body: bytes,
    shape: ResponseShape | str = ResponseShape.JSON,
    encoding: str = "utf-8",
    model: Optional[Any] = None,
    reason: str = "",
) -> Any:
    """Check *status_code*, then decode *body* into *shape*.

    The shape is validated first so that an unsupported request fails as a
    programming error even when the server also returned an error status.
    """
    shape = check_decodable(shape, model)
    check_status(status_code, body, encoding, reason)
    return decode(shape, body, encoding, model)
