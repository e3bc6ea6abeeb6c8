"""Shared test fixtures for editron_auth.

Provides isolated config directories, output state management, a fast
loopback config, and a scriptable backend built on
:class:`httpx.MockTransport`. These fixtures are discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from editron_auth.models import AppConfig, BackendConfig, OAuthConfig
from editron_auth.output import OutputFormat, OutputManager, reset_output, set_output

PROFILE_BODY: dict[str, Any] = {
    "id": 42,
    "email": "ada@example.com",
    "name": "Ada Lovelace",
    "profilePicture": "https://cdn.example.com/ada.png",
    "authProvider": "google",
}


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams, so a stale manager would
    write to closed files.
    """
    yield
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the XDG directories at *tmp_path* and clear ``EDITRON_*`` variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("editron_auth.config._is_xdg_platform", lambda: True)

    for var in [
        "EDITRON_BACKEND_URL",
        "EDITRON_API_VERSION",
        "EDITRON_OAUTH_PORT_START",
        "EDITRON_OAUTH_TIMEOUT",
        "EDITRON_OAUTH_TRANSPORT",
        "EDITRON_SERVER_ID",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def app_config() -> AppConfig:
    """Config with a fake backend and fast loopback timings."""
    return AppConfig(
        backend=BackendConfig(base_url="http://backend.test"),
        oauth=OAuthConfig(
            callback_port_start=18080,
            callback_port_range=50,
            timeout_seconds=5,
            shutdown_grace_seconds=0,
        ),
    )


# ---------------------------------------------------------------------------
# Mock backend
# ---------------------------------------------------------------------------


class FakeBackend:
    """Scriptable stand-in for the Editron backend's auth endpoints.

    Records every request; responses can be overridden per endpoint by
    assigning to :attr:`login`, :attr:`exchange` or :attr:`profile`.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.login: Callable[[httpx.Request], httpx.Response] = self._login
        self.exchange: Callable[[httpx.Request], httpx.Response] = lambda request: (
            httpx.Response(200, json={"accessToken": "tok", "refreshToken": "ref"})
        )
        self.profile: Callable[[httpx.Request], httpx.Response] = lambda request: (
            httpx.Response(200, json=PROFILE_BODY)
        )

    @staticmethod
    def _login(request: httpx.Request) -> httpx.Response:
        redirect_uri = request.url.params.get("redirect_uri", "")
        url = httpx.URL(
            "https://idp.example/authorize",
            params={"client_id": "editron", "redirect_uri": redirect_uri},
        )
        return httpx.Response(200, json={"url": str(url)})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/api/v1/auth/google/login":
            return self.login(request)
        if path == "/api/v1/auth/token/exchange":
            return self.exchange(request)
        if path == "/api/v1/auth/user":
            return self.profile(request)
        return httpx.Response(404)

    @staticmethod
    def reply(status: int, body: Optional[Any] = None) -> Callable[[httpx.Request], httpx.Response]:
        """Endpoint handler answering *status* with a JSON *body* (plain text when omitted)."""

        def _handler(request: httpx.Request) -> httpx.Response:
            if body is None:
                return httpx.Response(status, text="nope")
            return httpx.Response(status, json=body)

        return _handler

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    def exchange_bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests_to("/auth/token/exchange")]


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
