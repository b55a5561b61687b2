"""Authentication strategies for apibase clients.

A strategy is an :class:`Authenticator` (the sign-in hook) combined with one
credential capability: :class:`HeaderCredentials` or
:class:`QueryCredentials`. Built-in strategies cover bearer tokens, API
keys, HMAC-signed query strings, and the OAuth2 client-credentials grant.

Typical usage::

    from apibase import ApiClient
    from apibase.auth import BearerAuth

    client = ApiClient("https://api.example.com", BearerAuth(source="env:TOKEN"))
"""

from apibase.auth.api_key import ApiKeyAuth, ApiKeyHeaderAuth, ApiKeyQueryAuth
from apibase.auth.base import Authenticator, HeaderCredentials, NoAuth, QueryCredentials
from apibase.auth.bearer import BearerAuth
from apibase.auth.oauth2 import OAuth2ClientCredentialsAuth
from apibase.auth.registry import AuthRegistry, create_authenticator, create_default_registry
from apibase.auth.signed_query import SignedQueryAuth

__all__ = [
    "ApiKeyAuth",
    "ApiKeyHeaderAuth",
    "ApiKeyQueryAuth",
    "AuthRegistry",
    "Authenticator",
    "BearerAuth",
    "HeaderCredentials",
    "NoAuth",
    "OAuth2ClientCredentialsAuth",
    "QueryCredentials",
    "SignedQueryAuth",
    "create_authenticator",
    "create_default_registry",
]
