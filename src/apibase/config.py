"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module builds the :class:`~apibase.models.ClientConfig` the CLI (and
any application that prefers file-based settings) hands to
:class:`~apibase.client.ApiClient`:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.apibase/`` on macOS and Windows. See :func:`get_config_dir`.
* **User config** -- a single JSON file holding :class:`ClientConfig`
  fields, managed with :func:`load_user_config` / :func:`save_user_config`.
* **Project config** -- ``./apibase.json`` in the working directory.
* **Precedence resolution** -- :func:`resolve_config` merges explicit
  arguments, environment variables, project config, and user config.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, interactive prompts, or literal values.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`).
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from apibase.exceptions import ConfigError
from apibase.models import ClientConfig

_APP_NAME = "apibase"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "apibase.json"

ENV_ROOT_URL = "APIBASE_ROOT_URL"
ENV_ENCODING = "APIBASE_ENCODING"
ENV_CONTENT_KIND = "APIBASE_CONTENT_KIND"
ENV_TIMEOUT = "APIBASE_TIMEOUT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/apibase/`` (default ``~/.config/apibase/``).
    On macOS/Windows: ``~/.apibase/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config files ---


def _read_json(path: Path, label: str) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read {label} at {path}: {exc}") from exc
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {label} at {path}: expected a JSON object")
    return data


def user_config_path() -> Path:
    """Path to the user-level config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_user_config() -> dict[str, Any]:
    """Load the user-level config file.

    Returns:
        The raw settings dict; empty when the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    return _read_json(user_config_path(), "user config") or {}


def save_user_config(data: dict[str, Any]) -> None:
    """Persist user-level settings atomically.

    Args:
        data: Settings keyed by :class:`ClientConfig` field names. Unset
            fields may be omitted; ``root_url`` is not required here.
    """
    _atomic_write(user_config_path(), json.dumps(data, indent=2) + "\n")


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./apibase.json``.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but cannot be read or is not valid JSON.
    """
    return _read_json(Path.cwd() / _PROJECT_CONFIG_FILENAME, "project config")


# --- Precedence resolution ---


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if os.environ.get(ENV_ROOT_URL):
        overrides["root_url"] = os.environ[ENV_ROOT_URL]
    if os.environ.get(ENV_ENCODING):
        overrides["encoding"] = os.environ[ENV_ENCODING]
    if os.environ.get(ENV_CONTENT_KIND):
        overrides["default_content_kind"] = os.environ[ENV_CONTENT_KIND].lower()
    if os.environ.get(ENV_TIMEOUT):
        raw = os.environ[ENV_TIMEOUT]
        try:
            overrides["timeout"] = float(raw)
        except ValueError as exc:
            raise ConfigError(f"{ENV_TIMEOUT} must be a number, got '{raw}'") from exc
    return overrides


def resolve_config(
    root_url: Optional[str] = None,
    encoding: Optional[str] = None,
    default_content_kind: Optional[str] = None,
    timeout: Optional[float] = None,
) -> ClientConfig:
    """Resolve a :class:`ClientConfig` through the full precedence chain.

    Precedence (high to low):
        1. Explicit arguments (CLI flags)
        2. Environment variables (``APIBASE_ROOT_URL``, ``APIBASE_ENCODING``,
           ``APIBASE_CONTENT_KIND``, ``APIBASE_TIMEOUT``)
        3. Project config (``./apibase.json``)
        4. User config (``~/.config/apibase/config.json``)
        5. Model defaults

    Raises:
        ConfigError: If no root URL is configured anywhere, or the merged
            settings fail validation.
    """
    merged: dict[str, Any] = {}
    merged.update(load_user_config())
    merged.update(load_project_config() or {})
    merged.update(_env_overrides())

    explicit = {
        "root_url": root_url,
        "encoding": encoding,
        "default_content_kind": default_content_kind,
        "timeout": timeout,
    }
    merged.update({key: value for key, value in explicit.items() if value is not None})

    if not merged.get("root_url"):
        raise ConfigError(
            f"No root URL configured. Pass --root-url, set {ENV_ROOT_URL}, "
            f"or add 'root_url' to ./{_PROJECT_CONFIG_FILENAME}"
        )
    try:
        return ClientConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)
        - ``"value:SECRET"`` -- the literal text after the prefix

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    if source.startswith("value:"):
        return source[6:]

    raise ConfigError(f"Unknown credential source: '{source}'")
