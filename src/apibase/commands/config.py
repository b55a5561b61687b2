"""Config commands -- view and modify the user configuration.

Provides the ``apibase config`` sub-command group. ``show`` prints the
effective :class:`~apibase.models.ClientConfig` (after precedence
resolution) and ``set`` writes one key of the user config file.
"""

from __future__ import annotations

import typer

from apibase.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Example::

        apibase config show
        apibase --json config show
    """
    from apibase.config import get_config_dir, resolve_config
    from apibase.exceptions import ConfigError

    obj = ctx.obj or {}
    info(f"Config directory: {get_config_dir()}")
    try:
        config = resolve_config(root_url=obj.get("root_url"))
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation for auth fields, e.g. 'auth.source')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a value in the user configuration file.

    The value is validated against :class:`~apibase.models.ClientConfig`
    (with a placeholder root URL when none is stored yet) before saving.

    Raises:
        typer.Exit: With code 2 if the key is unknown or the value invalid.

    Example::

        apibase config set root_url https://api.example.com
        apibase config set default_content_kind json
        apibase config set auth.type bearer
    """
    from pydantic import ValidationError

    from apibase.config import load_user_config, save_user_config
    from apibase.models import AuthConfig, ClientConfig

    data = load_user_config()
    keys = key.split(".")

    if len(keys) == 1:
        if keys[0] not in ClientConfig.model_fields or keys[0] == "auth":
            error(f"Unknown config key: {key}")
            raise typer.Exit(code=2)
        data[keys[0]] = value
    elif len(keys) == 2 and keys[0] == "auth":
        if keys[1] not in AuthConfig.model_fields:
            error(f"Unknown config key: {key}")
            raise typer.Exit(code=2)
        auth = dict(data.get("auth") or {})
        auth[keys[1]] = value.split(",") if keys[1] == "scopes" else value
        data["auth"] = auth
    else:
        error(f"Invalid config key: {key}")
        raise typer.Exit(code=2)

    candidate = dict(data)
    candidate.setdefault("root_url", "https://placeholder.invalid")
    try:
        validated = ClientConfig.model_validate(candidate)
    except ValidationError as exc:
        error(f"Invalid value for {key}: {exc}")
        raise typer.Exit(code=2) from None

    if keys[0] != "auth" and keys[0] != "root_url":
        data[keys[0]] = validated.model_dump(mode="json")[keys[0]]
    save_user_config(data)
    success(f"Set {key} = {value}")
