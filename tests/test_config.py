"""Tests for editron_auth.config: XDG paths, atomic writes and env precedence."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from editron_auth.config import (
    _atomic_write,
    config_path,
    get_config_dir,
    get_data_dir,
    load_app_config,
    save_app_config,
)
from editron_auth.exceptions import ConfigError
from editron_auth.models import AppConfig, CallbackTransport


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("editron_auth.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "editron-auth"
        assert result.is_dir()

    def test_data_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_data"
        monkeypatch.setattr("editron_auth.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(custom))

        result = get_data_dir()
        assert result == custom / "editron-auth"
        assert result.is_dir()

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("editron_auth.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".editron-auth"
        assert get_data_dir() == tmp_path / ".editron-auth" / "data"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        _atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"

    def test_no_temp_files_left_on_success(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "content")
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("editron_auth.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_mode_applied(self, tmp_path: Path) -> None:
        target = tmp_path / "secret.json"
        _atomic_write(target, "{}", mode=0o600)
        assert stat.S_IMODE(target.stat().st_mode) == 0o600


# ---------------------------------------------------------------------------
# App config resolution
# ---------------------------------------------------------------------------


class TestLoadAppConfig:
    def test_defaults(self, isolated_config: Path) -> None:
        config = load_app_config()
        assert config.backend.base_url == "http://localhost:5000"
        assert config.backend.api_version == "v1"
        assert config.oauth.transport == CallbackTransport.LOOPBACK
        assert config.oauth.callback_port_start == 8080
        assert config.oauth.callback_port_range == 100
        assert config.oauth.timeout_seconds == 300
        assert config.oauth.provider == "google-oauth2"
        assert config.server.default_server_id == "backend_v1"

    def test_file_values(self, isolated_config: Path) -> None:
        _write_json(
            config_path(),
            {"backend": {"base_url": "https://api.editron.dev"}, "oauth": {"timeout_seconds": 60}},
        )
        config = load_app_config()
        assert config.backend.base_url == "https://api.editron.dev"
        assert config.oauth.timeout_seconds == 60
        assert config.backend.api_version == "v1"

    def test_env_overrides_file(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(config_path(), {"backend": {"base_url": "https://from-file.example"}})
        monkeypatch.setenv("EDITRON_BACKEND_URL", "https://from-env.example")
        monkeypatch.setenv("EDITRON_API_VERSION", "v2")
        monkeypatch.setenv("EDITRON_OAUTH_PORT_START", "9000")
        monkeypatch.setenv("EDITRON_OAUTH_TIMEOUT", "12.5")
        monkeypatch.setenv("EDITRON_OAUTH_TRANSPORT", "deep_link")
        monkeypatch.setenv("EDITRON_SERVER_ID", "backend_v2")

        config = load_app_config()
        assert config.backend.base_url == "https://from-env.example"
        assert config.backend.api_version == "v2"
        assert config.oauth.callback_port_start == 9000
        assert config.oauth.timeout_seconds == 12.5
        assert config.oauth.transport == CallbackTransport.DEEP_LINK
        assert config.server.default_server_id == "backend_v2"

    def test_unparseable_env_value(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EDITRON_OAUTH_PORT_START", "eighty")
        with pytest.raises(ConfigError, match="EDITRON_OAUTH_PORT_START"):
            load_app_config()

    def test_out_of_range_env_value(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EDITRON_OAUTH_PORT_START", "70000")
        with pytest.raises(ConfigError):
            load_app_config()

    def test_unknown_transport(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EDITRON_OAUTH_TRANSPORT", "carrier_pigeon")
        with pytest.raises(ConfigError):
            load_app_config()

    def test_invalid_json(self, isolated_config: Path) -> None:
        path = config_path()
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_app_config()

    def test_non_object_json(self, isolated_config: Path) -> None:
        _write_json(config_path(), ["backend"])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_app_config()

    def test_save_then_load(self, isolated_config: Path) -> None:
        config = AppConfig()
        config.oauth.callback_port_start = 9100
        save_app_config(config)
        assert load_app_config().oauth.callback_port_start == 9100


class TestDerivedUrls:
    def test_endpoint_urls(self) -> None:
        config = AppConfig()
        config.backend.base_url = "https://api.editron.dev/"
        assert config.backend_api_url() == "https://api.editron.dev/api/v1"
        assert config.google_login_url() == "https://api.editron.dev/api/v1/auth/google/login"
        assert config.token_exchange_url() == "https://api.editron.dev/api/v1/auth/token/exchange"
        assert config.user_profile_url() == "https://api.editron.dev/api/v1/auth/user"

    def test_callback_urls(self) -> None:
        config = AppConfig()
        assert config.loopback_callback_url(8080) == "http://127.0.0.1:8080/auth/callback"
        assert config.deep_link_callback_url() == "editron-app://auth/callback"
