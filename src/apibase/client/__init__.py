"""HTTP client module for apibase.

Provides :class:`ApiClient`, the asynchronous base class concrete API
clients build on. It wraps :class:`httpx.AsyncClient` with lazy sign-in,
credential injection, payload serialization, and shape-driven response
decoding.

Example::

    from apibase.client import ApiClient

    async with ApiClient("https://api.example.com") as client:
        users = await client.get("/users", shape="json_array")
"""

from apibase.client.api_client import ApiClient

__all__ = ["ApiClient"]
