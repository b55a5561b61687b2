"""Call command -- run one request through the apibase pipeline.

``apibase call METHOD PATH`` resolves the client configuration (flags,
environment, ``./apibase.json``, user config), builds the configured
authenticator, sends the request with :class:`~apibase.client.ApiClient`,
and renders the decoded response on stdout.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer

from apibase.exceptions import ApibaseError


def _parse_body(data: Optional[str]) -> Any:  # noqa: ANN401
    """Parse *data* as a JSON object or array if possible, else keep the raw text."""
    if data is None:
        return None
    try:
        parsed = json.loads(data)
    except (json.JSONDecodeError, TypeError):
        return data
    return parsed if isinstance(parsed, (dict, list)) else data


async def _run_call(
    config: Any,
    authenticator: Any,
    method: str,
    path: str,
    payload: Any,
    content_kind: str,
    shape: str,
) -> Any:
    from apibase.client import ApiClient

    async with ApiClient(config, authenticator) as client:
        return await client.request(
            path,
            method,
            payload,
            content_kind=content_kind,
            shape=shape,
        )


def call_command(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP method: GET, PUT, POST, or DELETE."),
    path: str = typer.Argument(help="Path appended to the root URL, e.g. '/users?page=2'."),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Request body. JSON objects and arrays are sent as JSON."
    ),
    data_file: Optional[Path] = typer.Option(
        None, "--data-file", help="Read the request body from a file (sent as raw bytes)."
    ),
    content_kind: str = typer.Option(
        "auto", "--content-kind", "-c",
        help="undefined, auto, json, url_encoded, or xml.",
    ),
    shape: str = typer.Option(
        "json", "--shape", "-s",
        help="Decode the response as bytes, text, json, json_object, json_array, or xml.",
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Deadline for the whole call, in seconds."
    ),
) -> None:
    """Send one request and print the decoded response.

    Raises:
        typer.Exit: With the failing error's exit code (see
            :mod:`apibase.exit_codes`), or 2 when both ``--data`` and
            ``--data-file`` are given.

    Example::

        apibase --root-url https://api.example.com call GET /users
        apibase call POST /users -d '{"name": "ada"}'
        apibase call GET /feed.xml --shape xml
    """
    from apibase.auth import create_authenticator
    from apibase.config import resolve_config
    from apibase.output import debug, error, format_response

    if data is not None and data_file is not None:
        error("Use either --data or --data-file, not both")
        raise typer.Exit(code=2)

    obj = ctx.obj or {}
    try:
        config = resolve_config(root_url=obj.get("root_url"), timeout=timeout)
        authenticator = create_authenticator(config.auth)
        if data_file is not None:
            try:
                payload: Any = data_file.read_bytes()
            except OSError as exc:
                error(f"Cannot read {data_file}: {exc}")
                raise typer.Exit(code=2) from None
        else:
            payload = _parse_body(data)
        debug(f"Root URL: {config.root_url} (auth: {authenticator.auth_type})")
        result = asyncio.run(
            _run_call(config, authenticator, method, path, payload, content_kind, shape)
        )
    except ApibaseError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    format_response(result)
