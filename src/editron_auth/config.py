"""Configuration management with XDG paths, atomic writes, and env overrides.

This module handles all persistent configuration for editron_auth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.editron-auth/`` on macOS and Windows. See :func:`get_config_dir`
  and :func:`get_data_dir`.
* **App config** -- A single :class:`~editron_auth.models.AppConfig` JSON
  file holding backend, callback and server settings.
* **Precedence resolution** -- :func:`load_app_config` merges environment
  variables over ``config.json`` over built-in defaults.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so that a crash never leaves a half-written file.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from editron_auth.exceptions import ConfigError
from editron_auth.models import AppConfig

_APP_NAME = "editron-auth"
_CONFIG_FILENAME = "config.json"

SERVERS_FILENAME = "servers.json"
TOKENS_FILENAME = "tokens.json"

# env var -> (section, field, parser)
_ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "EDITRON_BACKEND_URL": ("backend", "base_url", str),
    "EDITRON_API_VERSION": ("backend", "api_version", str),
    "EDITRON_OAUTH_PORT_START": ("oauth", "callback_port_start", int),
    "EDITRON_OAUTH_TIMEOUT": ("oauth", "timeout_seconds", float),
    "EDITRON_OAUTH_TRANSPORT": ("oauth", "transport", str),
    "EDITRON_SERVER_ID": ("server", "default_server_id", str),
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform uses the XDG Base Directory layout (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/editron-auth/`` (default
    ``~/.config/editron-auth/``). On macOS/Windows: ``~/.editron-auth/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (session documents, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/editron-auth/`` (default
    ``~/.local/share/editron-auth/``). On macOS/Windows: ``~/.editron-auth/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given it is applied to the temp file before the rename, so the final
    file never exists with looser permissions.
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
        if mode is not None:
            os.chmod(tmp_path, mode)
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


# --- App config ---


def config_path() -> Path:
    """Path to the ``config.json`` file."""
    return get_config_dir() / _CONFIG_FILENAME


def _load_config_file() -> dict[str, Any]:
    path = config_path()
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config at {path}: expected a JSON object")
    return data


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    for env_var, (section, field, parse) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_var)
        if not raw:
            continue
        try:
            value = parse(raw)
        except ValueError as exc:
            raise ConfigError(f"Invalid value for {env_var}: {raw!r}") from exc
        bucket = data.setdefault(section, {})
        if not isinstance(bucket, dict):
            raise ConfigError(f"Invalid config: '{section}' must be an object")
        bucket[field] = value
    return data


def load_app_config() -> AppConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. Environment variables (``EDITRON_BACKEND_URL``,
           ``EDITRON_API_VERSION``, ``EDITRON_OAUTH_PORT_START``,
           ``EDITRON_OAUTH_TIMEOUT``, ``EDITRON_OAUTH_TRANSPORT``,
           ``EDITRON_SERVER_ID``)
        2. User config (``~/.config/editron-auth/config.json``)
        3. Defaults

    Raises:
        ConfigError: If the file holds invalid JSON, or any value (from the
            file or the environment) fails validation.
    """
    data = _apply_env_overrides(_load_config_file())
    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def save_app_config(config: AppConfig) -> None:
    """Persist *config* atomically to ``config.json``."""
    data = config.model_dump(mode="json")
    _atomic_write(config_path(), json.dumps(data, indent=2) + "\n")
