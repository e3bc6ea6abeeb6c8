"""System browser launcher.

The orchestrator opens the provider's authorization page through a
:class:`BrowserLauncher` so tests and embedders can substitute their own.
"""

from __future__ import annotations

import asyncio
import webbrowser
from abc import ABC, abstractmethod
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from editron_auth.exceptions import BrowserLaunchError
from editron_auth.output import debug


def with_query_params(url: str, **params: str) -> str:
    """Return *url* with *params* appended to its query string.

    Existing parameters are kept; a parameter already present is replaced.
    """
    parsed = urlparse(url)
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k not in params]
    query.extend(params.items())
    return urlunparse(parsed._replace(query=urlencode(query)))


class BrowserLauncher(ABC):
    """Opens a URL for the user to interact with."""

    @abstractmethod
    async def open(self, url: str) -> None:
        """Open *url*.

        Raises:
            BrowserLaunchError: If no browser could be opened.
        """


class SystemBrowser(BrowserLauncher):
    """Opens URLs with :func:`webbrowser.open`.

    ``webbrowser`` may block while it spawns a process, so the call runs in
    a worker thread.
    """

    async def open(self, url: str) -> None:
        debug("Opening system browser for authorization")
        try:
            opened = await asyncio.to_thread(webbrowser.open, url)
        except webbrowser.Error as exc:
            raise BrowserLaunchError(f"Could not open browser: {exc}") from exc
        if not opened:
            raise BrowserLaunchError(
                "Could not open a browser. Open the authorization URL manually."
            )
