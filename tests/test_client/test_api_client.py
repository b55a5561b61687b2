"""Tests for the asynchronous API client pipeline."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional
from xml.etree import ElementTree

import httpx
import pytest
from pydantic import BaseModel

from apibase.auth import ApiKeyQueryAuth, BearerAuth, SignedQueryAuth
from apibase.auth.base import Authenticator, HeaderCredentials
from apibase.auth.signed_query import sign
from apibase.client import ApiClient
from apibase.exceptions import (
    ArgumentError,
    AuthError,
    ConnectionError_,
    ParseError,
    RequestTimeoutError,
    TransportError,
    UnsupportedShapeError,
)
from apibase.models import ClientConfig, ContentKind, HttpMethod, ResponseShape, SessionState
from apibase.output import OutputManager, set_output


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_client(
    handler: Any,
    authenticator: Optional[Authenticator] = None,
    root_url: str = "https://api.example.com/",
    **config: Any,
) -> ApiClient:
    return ApiClient(
        ClientConfig(root_url=root_url, **config),
        authenticator,
        transport=httpx.MockTransport(handler),
    )


def _recording_handler(
    response: Optional[httpx.Response] = None,
) -> tuple[list[httpx.Request], Any]:
    """Return a list of seen requests and a handler that appends to it."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if response is not None:
            return response
        return httpx.Response(200, json={"ok": True})

    return seen, handler


def _call(client: ApiClient, *args: Any, **kwargs: Any) -> Any:
    async def _go() -> Any:
        async with client:
            return await client.request(*args, **kwargs)

    return asyncio.run(_go())


class _CountingAuth(Authenticator, HeaderCredentials):
    """Header authenticator that counts sign-ins and can fail the first few."""

    def __init__(self, fail_times: int = 0, delay: float = 0.0) -> None:
        self.calls = 0
        self.fail_times = fail_times
        self.delay = delay
        self.token: Optional[str] = None

    @property
    def auth_type(self) -> str:
        return "counting"

    async def sign_in(self) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls <= self.fail_times:
            raise AuthError("bad credentials")
        self.token = f"token-{self.calls}"

    def apply_headers(self, request: Any) -> None:
        request.headers["Authorization"] = f"Bearer {self.token}"


class _LoginAuth(Authenticator, HeaderCredentials):
    """Signs in by POSTing to /login through the client it serves."""

    def __init__(self) -> None:
        self.client: Optional[ApiClient] = None
        self.session: Optional[str] = None

    @property
    def auth_type(self) -> str:
        return "login"

    async def sign_in(self) -> None:
        assert self.client is not None
        data = await self.client.post(
            "/login", {"user": "ada"}, shape=ResponseShape.JSON_OBJECT
        )
        self.session = data["session"]

    def apply_headers(self, request: Any) -> None:
        request.headers["X-Session"] = self.session


class User(BaseModel):
    id: int
    name: str


@pytest.fixture(autouse=True)
def _quiet_output():
    set_output(OutputManager(no_color=True, quiet=True))
    yield


# ---------------------------------------------------------------------------
# Construction and settings
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_string_config_is_root_url(self) -> None:
        client = ApiClient("https://api.example.com/v1/")
        assert client.root_url == "https://api.example.com/v1"
        assert client.encoding == "utf-8"
        assert client.default_content_kind is ContentKind.UNDEFINED

    def test_missing_config_raises(self) -> None:
        with pytest.raises(ArgumentError):
            ApiClient(None)  # type: ignore[arg-type]

    def test_blank_root_url_raises(self) -> None:
        with pytest.raises(ArgumentError):
            ApiClient("   ")

    def test_only_slashes_root_url_raises(self) -> None:
        with pytest.raises(ArgumentError):
            ApiClient("///")

    def test_encoding_setter_rejects_unknown(self) -> None:
        client = ApiClient("https://api.example.com")
        with pytest.raises(ArgumentError):
            client.encoding = "no-such-codec"

    def test_encoding_setter_rejects_empty(self) -> None:
        client = ApiClient("https://api.example.com")
        with pytest.raises(ArgumentError):
            client.encoding = ""

    def test_default_content_kind_rejects_auto(self) -> None:
        client = ApiClient("https://api.example.com")
        with pytest.raises(ArgumentError):
            client.default_content_kind = ContentKind.AUTO

    def test_default_content_kind_accepts_string(self) -> None:
        client = ApiClient("https://api.example.com")
        client.default_content_kind = "json"
        assert client.default_content_kind is ContentKind.JSON

    def test_initial_session_state(self) -> None:
        client = ApiClient("https://api.example.com")
        assert client.session_state is SessionState.UNAUTHENTICATED
        assert client.authenticator.auth_type == "none"


class TestContextManager:
    def test_exit_closes_client(self) -> None:
        client = _make_client(lambda request: httpx.Response(200))

        async def _go() -> None:
            async with client:
                assert client._client is not None
            assert client._client is None

        asyncio.run(_go())


# ---------------------------------------------------------------------------
# URL composition
# ---------------------------------------------------------------------------


class TestUrlComposition:
    def test_trailing_slashes_trimmed(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler, root_url="https://api.example.com///")
        _call(client, "/users")
        assert str(seen[0].url) == "https://api.example.com/users"

    def test_path_appended_verbatim(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler, root_url="https://api.example.com/v2")
        _call(client, "/users?page=2")
        assert seen[0].url.path == "/v2/users"
        assert seen[0].url.params["page"] == "2"

    def test_static_headers_sent(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler, headers={"X-Client": "apibase-tests"})
        _call(client, "/ping")
        assert seen[0].headers["X-Client"] == "apibase-tests"

    def test_static_headers_replaced_regardless_of_case(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(
            handler,
            BearerAuth(token="t"),
            headers={"content-type": "text/plain", "authorization": "Basic x"},
        )
        _call(client, "/orders", HttpMethod.POST, {"a": 1})
        assert seen[0].headers.get_list("content-type") == ["application/json"]
        assert seen[0].headers.get_list("authorization") == ["Bearer t"]

    def test_redirects_followed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(302, headers={"Location": "https://api.example.com/new"})
            return httpx.Response(200, json={"path": request.url.path})

        client = _make_client(handler)
        assert _call(client, "/old") == {"path": "/new"}


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class TestRequestBodies:
    def test_get_with_body_rejected_before_network(self) -> None:
        seen, handler = _recording_handler()
        auth = _CountingAuth()
        client = _make_client(handler, auth)
        with pytest.raises(ArgumentError, match="GET method"):
            _call(client, "/search", HttpMethod.GET, {"q": "x"})
        assert seen == []
        assert auth.calls == 0

    def test_get_with_empty_string_allowed(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)
        _call(client, "/search", "GET", "")
        assert len(seen) == 1

    def test_auto_infers_json_from_dict(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)
        _call(client, "/users", HttpMethod.POST, {"name": "ada", "tags": ["x"]})
        assert seen[0].headers["Content-Type"] == "application/json"
        assert seen[0].content == b'{"name":"ada","tags":["x"]}'

    def test_auto_uses_client_default(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler, default_content_kind=ContentKind.XML)
        _call(client, "/items", "POST", "<item/>")
        assert seen[0].headers["Content-Type"] == "application/xml"
        assert seen[0].content == b"<item/>"

    def test_undefined_sends_no_content_type(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)
        _call(client, "/raw", "PUT", b"\x00\x01", content_kind=ContentKind.UNDEFINED)
        assert "Content-Type" not in seen[0].headers
        assert seen[0].content == b"\x00\x01"

    def test_url_encoded_mapping(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)
        _call(client, "/form", "POST", {"a": "1", "b": "x y"}, content_kind="url_encoded")
        assert seen[0].headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert seen[0].content == b"a=1&b=x+y"

    def test_xml_element_payload(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)
        element = ElementTree.Element("order")
        ElementTree.SubElement(element, "qty").text = "2"
        _call(client, "/orders", "POST", element)
        assert seen[0].headers["Content-Type"] == "application/xml"
        assert seen[0].content == b"<order><qty>2</qty></order>"

    def test_model_payload(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)
        _call(client, "/users", "PUT", User(id=1, name="ada"))
        assert json.loads(seen[0].content) == {"id": 1, "name": "ada"}
        assert seen[0].headers["Content-Type"] == "application/json"

    def test_text_uses_client_encoding(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler, encoding="latin-1")
        _call(client, "/notes", "POST", "café")
        assert seen[0].content == b"caf\xe9"

    def test_unknown_method_rejected(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)
        with pytest.raises(ArgumentError):
            _call(client, "/x", "PATCH")
        assert seen == []


# ---------------------------------------------------------------------------
# Response interpretation
# ---------------------------------------------------------------------------


class TestResponses:
    @pytest.mark.parametrize("shape", list(ResponseShape))
    def test_error_status_carries_body_for_every_shape(self, shape: ResponseShape) -> None:
        _, handler = _recording_handler(httpx.Response(404, text='{"error":"not found"}'))
        client = _make_client(handler)
        with pytest.raises(TransportError) as exc_info:
            _call(client, "/users/9", shape=shape)
        assert exc_info.value.status_code == 404
        assert exc_info.value.body == '{"error":"not found"}'
        assert exc_info.value.exit_code == 5

    def test_created_is_success(self) -> None:
        _, handler = _recording_handler(httpx.Response(201, json={"id": 7}))
        client = _make_client(handler)
        assert _call(client, "/users", "POST", {"name": "ada"}) == {"id": 7}

    def test_no_content_is_an_error(self) -> None:
        _, handler = _recording_handler(httpx.Response(204))
        client = _make_client(handler)
        with pytest.raises(TransportError) as exc_info:
            _call(client, "/users/1", "DELETE")
        assert exc_info.value.status_code == 204

    @pytest.mark.parametrize(
        "shape", [s for s in ResponseShape if s is not ResponseShape.BYTES]
    )
    def test_empty_body_is_none(self, shape: ResponseShape) -> None:
        _, handler = _recording_handler(httpx.Response(200))
        client = _make_client(handler)
        assert _call(client, "/empty", shape=shape) is None

    def test_empty_body_bytes(self) -> None:
        _, handler = _recording_handler(httpx.Response(200))
        client = _make_client(handler)
        assert _call(client, "/empty", shape=ResponseShape.BYTES) == b""

    def test_text_shape(self) -> None:
        _, handler = _recording_handler(httpx.Response(200, content="héllo".encode()))
        client = _make_client(handler)
        assert _call(client, "/greeting", shape="text") == "héllo"

    def test_json_array_shape(self) -> None:
        _, handler = _recording_handler(httpx.Response(200, json=[1, 2, 3]))
        client = _make_client(handler)
        assert _call(client, "/numbers", shape=ResponseShape.JSON_ARRAY) == [1, 2, 3]

    def test_json_object_shape_rejects_array(self) -> None:
        _, handler = _recording_handler(httpx.Response(200, json=[1, 2, 3]))
        client = _make_client(handler)
        with pytest.raises(ParseError):
            _call(client, "/numbers", shape=ResponseShape.JSON_OBJECT)

    def test_xml_shape(self) -> None:
        _, handler = _recording_handler(
            httpx.Response(200, content=b"<feed><entry id='1'/></feed>")
        )
        client = _make_client(handler)
        root = _call(client, "/feed", shape=ResponseShape.XML)
        assert root.tag == "feed"
        assert root.find("entry").get("id") == "1"

    def test_typed_model(self) -> None:
        _, handler = _recording_handler(httpx.Response(200, json={"id": 1, "name": "ada"}))
        client = _make_client(handler)
        user = _call(client, "/users/1", model=User)
        assert user == User(id=1, name="ada")

    def test_typed_model_list(self) -> None:
        _, handler = _recording_handler(
            httpx.Response(200, json=[{"id": 1, "name": "ada"}, {"id": 2, "name": "bob"}])
        )
        client = _make_client(handler)
        users = _call(client, "/users", shape=ResponseShape.JSON_ARRAY, model=list[User])
        assert [u.name for u in users] == ["ada", "bob"]

    def test_typed_model_mismatch(self) -> None:
        _, handler = _recording_handler(httpx.Response(200, json={"id": "x"}))
        client = _make_client(handler)
        with pytest.raises(ParseError):
            _call(client, "/users/1", model=User)

    def test_unsupported_shape_rejected_before_network(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)
        with pytest.raises(UnsupportedShapeError):
            _call(client, "/users", shape="yaml")
        assert seen == []

    def test_model_with_non_json_shape_rejected_before_network(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)

        async def _go() -> Any:
            async with client:
                return await client.post("/orders", {"a": 1}, shape="bytes", model=User)

        with pytest.raises(UnsupportedShapeError, match="only be decoded from JSON"):
            asyncio.run(_go())
        assert seen == []

    def test_model_with_non_json_shape_wins_over_error_status(self) -> None:
        seen, handler = _recording_handler(httpx.Response(404, text="missing"))
        client = _make_client(handler, authenticator=_CountingAuth())
        with pytest.raises(UnsupportedShapeError):
            _call(client, "/orders/1", shape=ResponseShape.XML, model=User)
        assert seen == []
        assert client.authenticator.calls == 0


# ---------------------------------------------------------------------------
# Sign-in and credentials
# ---------------------------------------------------------------------------


class TestSignIn:
    def test_concurrent_first_calls_sign_in_once(self) -> None:
        seen, handler = _recording_handler()
        auth = _CountingAuth(delay=0.01)
        client = _make_client(handler, auth)

        async def _go() -> None:
            async with client:
                await asyncio.gather(*(client.get(f"/items/{i}") for i in range(5)))

        asyncio.run(_go())
        assert auth.calls == 1
        assert len(seen) == 5
        assert all(r.headers["Authorization"] == "Bearer token-1" for r in seen)
        assert client.session_state is SessionState.AUTHENTICATED

    def test_failed_sign_in_is_retried_by_next_call(self) -> None:
        seen, handler = _recording_handler()
        auth = _CountingAuth(fail_times=1)
        client = _make_client(handler, auth)

        async def _go() -> Any:
            async with client:
                with pytest.raises(AuthError):
                    await client.get("/me")
                assert client.session_state is SessionState.UNAUTHENTICATED
                return await client.get("/me")

        assert asyncio.run(_go()) == {"ok": True}
        assert auth.calls == 2
        assert len(seen) == 1
        assert seen[0].headers["Authorization"] == "Bearer token-2"

    def test_sign_in_calls_through_same_client(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/login":
                return httpx.Response(200, json={"session": "s-123"})
            return httpx.Response(200, json={"user": "ada"})

        auth = _LoginAuth()
        client = _make_client(handler, auth)
        auth.client = client

        assert _call(client, "/me") == {"user": "ada"}
        login, me = seen
        assert login.url.path == "/login"
        assert "X-Session" not in login.headers
        assert me.headers["X-Session"] == "s-123"

    def test_no_auth_sends_no_credentials(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler)
        _call(client, "/public")
        assert "Authorization" not in seen[0].headers
        assert client.session_state is SessionState.AUTHENTICATED

    def test_query_credentials_appended_after_existing_query(self) -> None:
        seen, handler = _recording_handler()
        auth = SignedQueryAuth(
            key_source="value:K1",
            secret_source="value:s3cret",
            clock=lambda: 1700000000.5,
        )
        client = _make_client(handler, auth)
        _call(client, "/quotes?symbol=ABC")

        assert seen[0].url.params.multi_items() == [
            ("symbol", "ABC"),
            ("api_key", "K1"),
            ("timestamp", "1700000000"),
            ("signature", sign("K1", "1700000000", "s3cret")),
        ]

    def test_query_key_is_percent_encoded(self) -> None:
        seen, handler = _recording_handler()
        client = _make_client(handler, ApiKeyQueryAuth("value:a b&c", param_name="key"))
        _call(client, "/maps")
        assert seen[0].url.params["key"] == "a b&c"


# ---------------------------------------------------------------------------
# Network failures and deadlines
# ---------------------------------------------------------------------------


class TestFailures:
    def test_connect_error_mapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _make_client(handler)
        with pytest.raises(ConnectionError_) as exc_info:
            _call(client, "/x")
        assert not isinstance(exc_info.value, RequestTimeoutError)
        assert exc_info.value.exit_code == 6

    def test_httpx_timeout_mapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        client = _make_client(handler)
        with pytest.raises(RequestTimeoutError):
            _call(client, "/x")

    def test_deadline_covers_slow_response(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200)

        client = _make_client(handler)
        with pytest.raises(RequestTimeoutError, match="GET /slow"):
            _call(client, "/slow", timeout=0.05)

    def test_deadline_covers_sign_in(self) -> None:
        seen, handler = _recording_handler()
        auth = _CountingAuth(delay=5)
        client = _make_client(handler, auth, timeout=0.05)
        with pytest.raises(RequestTimeoutError):
            _call(client, "/x")
        assert seen == []
        assert client.session_state is SessionState.UNAUTHENTICATED
