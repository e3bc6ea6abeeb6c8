"""Tests for the system browser launcher."""

from __future__ import annotations

from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest

from editron_auth.browser import SystemBrowser, with_query_params
from editron_auth.exceptions import BrowserLaunchError


class TestWithQueryParams:
    def test_appends_to_existing_query(self) -> None:
        url = with_query_params("https://idp.example/authorize?client_id=editron", display="popup")
        query = parse_qs(urlparse(url).query)
        assert query == {"client_id": ["editron"], "display": ["popup"]}

    def test_replaces_existing_parameter(self) -> None:
        url = with_query_params("https://idp.example/authorize?display=page", display="popup")
        assert parse_qs(urlparse(url).query) == {"display": ["popup"]}

    def test_keeps_encoded_values(self) -> None:
        original = (
            "https://idp.example/authorize"
            "?redirect_uri=http%3A%2F%2F127.0.0.1%3A8080%2Fauth%2Fcallback"
        )
        url = with_query_params(original, display="popup")
        query = parse_qs(urlparse(url).query)
        assert query["redirect_uri"] == ["http://127.0.0.1:8080/auth/callback"]


class TestSystemBrowser:
    @pytest.mark.asyncio
    async def test_opens_url(self) -> None:
        with patch("editron_auth.browser.webbrowser.open", return_value=True) as mock_open:
            await SystemBrowser().open("https://idp.example/authorize")
        mock_open.assert_called_once_with("https://idp.example/authorize")

    @pytest.mark.asyncio
    async def test_no_browser_available(self) -> None:
        with patch("editron_auth.browser.webbrowser.open", return_value=False):
            with pytest.raises(BrowserLaunchError):
                await SystemBrowser().open("https://idp.example/authorize")
