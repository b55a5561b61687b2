"""Tests for the built-in authenticators and the auth registry."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
from urllib.parse import parse_qs

import httpx
import pytest

from apibase.auth import (
    ApiKeyAuth,
    ApiKeyHeaderAuth,
    ApiKeyQueryAuth,
    AuthRegistry,
    BearerAuth,
    NoAuth,
    OAuth2ClientCredentialsAuth,
    SignedQueryAuth,
    create_authenticator,
    create_default_registry,
)
from apibase.auth.signed_query import sign
from apibase.exceptions import AuthError, ConfigError
from apibase.models import AuthConfig, HttpMethod
from apibase.request import OutboundRequest, QueryParameterList


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_request() -> OutboundRequest:
    return OutboundRequest("https://api.example.com/x", HttpMethod.GET)


def _signed_in(authenticator):
    asyncio.run(authenticator.sign_in())
    return authenticator


# ---------------------------------------------------------------------------
# NoAuth / Bearer
# ---------------------------------------------------------------------------


class TestNoAuth:
    def test_sign_in_is_noop(self) -> None:
        auth = _signed_in(NoAuth())
        assert auth.auth_type == "none"


class TestBearerAuth:
    def test_literal_token(self) -> None:
        auth = _signed_in(BearerAuth(token="abc"))
        request = _make_request()
        auth.apply_headers(request)
        assert request.headers["Authorization"] == "Bearer abc"

    def test_token_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APIBASE_TEST_TOKEN", "from-env")
        auth = _signed_in(BearerAuth(source="env:APIBASE_TEST_TOKEN"))
        assert auth.token == "from-env"

    def test_missing_env_fails_sign_in(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("APIBASE_TEST_TOKEN", raising=False)
        with pytest.raises(ConfigError, match="APIBASE_TEST_TOKEN"):
            _signed_in(BearerAuth(source="env:APIBASE_TEST_TOKEN"))

    def test_no_header_before_sign_in(self) -> None:
        request = _make_request()
        BearerAuth(source="value:abc").apply_headers(request)
        assert "Authorization" not in request.headers


# ---------------------------------------------------------------------------
# API key
# ---------------------------------------------------------------------------


class TestApiKeyAuth:
    def test_header_default_name(self) -> None:
        auth = _signed_in(ApiKeyHeaderAuth("value:k-1"))
        request = _make_request()
        auth.apply_headers(request)
        assert request.headers["X-API-Key"] == "k-1"

    def test_query_param(self) -> None:
        auth = _signed_in(ApiKeyQueryAuth("value:k 1", param_name="key"))
        params = QueryParameterList()
        auth.apply_query(params)
        assert list(params) == [("key", "k+1")]

    def test_key_from_file(self, tmp_path) -> None:
        key_file = tmp_path / "key.txt"
        key_file.write_text("secret-key\n")
        auth = _signed_in(ApiKeyHeaderAuth(f"file:{key_file}", header="X-Key"))
        request = _make_request()
        auth.apply_headers(request)
        assert request.headers["X-Key"] == "secret-key"

    def test_from_config_dispatches_on_location(self) -> None:
        header = ApiKeyAuth.from_config(AuthConfig(type="api_key", source="value:x"))
        query = ApiKeyAuth.from_config(
            AuthConfig(type="api_key", source="value:x", location="query", param_name="k")
        )
        assert isinstance(header, ApiKeyHeaderAuth)
        assert isinstance(query, ApiKeyQueryAuth)
        assert query.param_name == "k"

    def test_validate_rejects_bad_location(self) -> None:
        errors = ApiKeyAuth.validate_config(
            AuthConfig(type="api_key", source="value:x", location="cookie")
        )
        assert len(errors) == 1
        assert "cookie" in errors[0]


# ---------------------------------------------------------------------------
# Signed query
# ---------------------------------------------------------------------------


class TestSignedQueryAuth:
    def test_sign_is_hmac_sha256(self) -> None:
        expected = hmac.new(b"s", b"key123", hashlib.sha256).hexdigest()
        assert sign("key", "123", "s") == expected

    def test_appends_key_timestamp_signature(self) -> None:
        auth = _signed_in(
            SignedQueryAuth("value:key", "value:s", clock=lambda: 123.9)
        )
        params = QueryParameterList()
        auth.apply_query(params)
        assert list(params) == [
            ("api_key", "key"),
            ("timestamp", "123"),
            ("signature", sign("key", "123", "s")),
        ]

    def test_fresh_timestamp_per_request(self) -> None:
        ticks = iter([100.0, 200.0])
        auth = _signed_in(SignedQueryAuth("value:key", "value:s", clock=lambda: next(ticks)))
        first, second = QueryParameterList(), QueryParameterList()
        auth.apply_query(first)
        auth.apply_query(second)
        assert first[1] == ("timestamp", "100")
        assert second[1] == ("timestamp", "200")

    def test_nothing_before_sign_in(self) -> None:
        params = QueryParameterList()
        SignedQueryAuth("value:key", "value:s").apply_query(params)
        assert len(params) == 0

    def test_validate_requires_secret(self) -> None:
        errors = SignedQueryAuth.validate_config(
            AuthConfig(type="signed_query", source="value:k")
        )
        assert any("secret_source" in e for e in errors)


# ---------------------------------------------------------------------------
# OAuth2 client credentials
# ---------------------------------------------------------------------------


class TestOAuth2ClientCredentials:
    def _make_auth(self, handler, scopes=("read", "write")) -> OAuth2ClientCredentialsAuth:
        return OAuth2ClientCredentialsAuth(
            token_url="https://auth.example.com/token",
            client_id_source="value:client-1",
            client_secret_source="value:shh",
            scopes=scopes,
            transport=httpx.MockTransport(handler),
        )

    def test_fetches_token_at_sign_in(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "tok", "token_type": "bearer"})

        auth = _signed_in(self._make_auth(handler))
        form = parse_qs(seen[0].content.decode())
        assert form == {
            "grant_type": ["client_credentials"],
            "client_id": ["client-1"],
            "client_secret": ["shh"],
            "scope": ["read write"],
        }
        request = _make_request()
        auth.apply_headers(request)
        assert request.headers["Authorization"] == "Bearer tok"

    def test_rejected_grant(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid_client"})

        with pytest.raises(AuthError, match="401"):
            _signed_in(self._make_auth(handler))

    def test_missing_access_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token_type": "bearer"})

        with pytest.raises(AuthError, match="access_token"):
            _signed_in(self._make_auth(handler))

    def test_non_json_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(AuthError, match="not valid JSON"):
            _signed_in(self._make_auth(handler))

    def test_network_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AuthError, match="Token request failed"):
            _signed_in(self._make_auth(handler))

    def test_validate_lists_missing_fields(self) -> None:
        errors = OAuth2ClientCredentialsAuth.validate_config(
            AuthConfig(type="oauth2_client_credentials")
        )
        assert len(errors) == 3


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestAuthRegistry:
    def test_default_types(self) -> None:
        assert create_default_registry().list_types() == [
            "api_key",
            "bearer",
            "none",
            "oauth2_client_credentials",
            "signed_query",
        ]

    def test_none_config_is_no_auth(self) -> None:
        assert isinstance(create_authenticator(None), NoAuth)

    def test_creates_bearer(self) -> None:
        auth = create_authenticator(AuthConfig(type="bearer", source="env:TOKEN"))
        assert isinstance(auth, BearerAuth)

    def test_creates_signed_query(self) -> None:
        auth = create_authenticator(
            AuthConfig(type="signed_query", source="value:k", secret_source="value:s")
        )
        assert isinstance(auth, SignedQueryAuth)

    def test_unknown_type(self) -> None:
        with pytest.raises(AuthError, match="Available types"):
            create_authenticator(AuthConfig(type="kerberos"))

    def test_invalid_config(self) -> None:
        with pytest.raises(ConfigError, match="oauth2_client_credentials"):
            create_authenticator(AuthConfig(type="oauth2_client_credentials"))

    def test_register_custom(self) -> None:
        registry = AuthRegistry()
        registry.register("anonymous", NoAuth)
        assert isinstance(registry.create(AuthConfig(type="anonymous")), NoAuth)
