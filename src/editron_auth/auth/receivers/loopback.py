"""Loopback HTTP listener for the authorization redirect.

A transient :class:`~http.server.HTTPServer` is bound on ``127.0.0.1`` at
the first free port of the configured range and served from a daemon
thread. The provider redirects the browser to
``http://127.0.0.1:<port>/auth/callback?code=...`` (or ``?error=...``); the
handler answers with a small HTML page and hands the outcome to the event
loop.

Lifecycle of one attempt::

    Idle -> Listening -> CodeReceived | ErrorReceived | TimedOut -> Stopped

After a code arrives the listener lingers for a short grace period so the
browser receives its confirmation page. On error, timeout or cancellation
it is stopped at once.
"""

from __future__ import annotations

import asyncio
import html
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from editron_auth.auth.correlation import CorrelationMaterial
from editron_auth.auth.receivers.base import (
    AuthorizationCallback,
    CallbackReceiver,
    OneShot,
    PendingReceipt,
)
from editron_auth.exceptions import (
    AuthorizationDeniedError,
    CallbackTimeoutError,
    NoPortAvailableError,
)
from editron_auth.models import AppConfig, CallbackTransport
from editron_auth.output import debug

CALLBACK_PATH = "/auth/callback"

_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Editron</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 4em;">
<h2>{title}</h2>
<p>{message}</p>
</body>
</html>
"""


def _page(title: str, message: str) -> bytes:
    return _PAGE.format(title=html.escape(title), message=html.escape(message)).encode("utf-8")


SUCCESS_PAGE = _page(
    "Login successful", "You can close this window and return to Editron."
)
ALREADY_HANDLED_PAGE = _page(
    "Login already handled", "This login attempt has already been completed."
)
INVALID_CALLBACK_PAGE = _page(
    "Invalid callback", "No authorization code was received. Please try logging in again."
)
NOT_FOUND_PAGE = _page("Not found", "")


def _first(params: dict[str, list[str]], name: str) -> Optional[str]:
    values = params.get(name)
    return values[0] if values else None


class _CallbackServer(HTTPServer):
    """HTTPServer carrying the resolve-once channel of its attempt."""

    def __init__(self, address: tuple[str, int], waiter: OneShot) -> None:
        super().__init__(address, _CallbackHandler)
        self.waiter = waiter


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path != CALLBACK_PATH:
            self._respond(404, NOT_FOUND_PAGE)
            return

        params = parse_qs(parsed.query)
        error = _first(params, "error")
        code = _first(params, "code")

        # a code wins over a stray error parameter
        if code:
            outcome: Any = AuthorizationCallback(code=code, state=_first(params, "state"))
            page = SUCCESS_PAGE
        elif error:
            outcome = AuthorizationDeniedError(error)
            page = _page("Login failed", f"Authorization failed: {error}")
        else:
            # keep waiting; the overall timeout still applies
            self._respond(400, INVALID_CALLBACK_PAGE)
            return

        if self.server.waiter.resolve(outcome):
            self._respond(200, page)
        else:
            self._respond(409, ALREADY_HANDLED_PAGE)

    def _respond(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        # request lines carry the authorization code
        pass


class LoopbackReceiver(CallbackReceiver):
    """Receives the redirect on a local HTTP listener.

    Args:
        config: Supplies host, port range, timeout and grace period.
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._active: Optional[PendingReceipt] = None
        self._draining: set[asyncio.Task[None]] = set()

    @property
    def transport(self) -> CallbackTransport:
        return CallbackTransport.LOOPBACK

    @property
    def listening_port(self) -> Optional[int]:
        """Port of the listener for the current attempt, if one is running."""
        return self._active.port if self._active else None

    async def begin(self, material: CorrelationMaterial) -> PendingReceipt:
        await self.close()

        waiter = OneShot()
        server = self._bind(waiter)
        port = server.server_address[1]
        thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": 0.1},
            name=f"editron-auth-callback-{port}",
            daemon=True,
        )
        thread.start()
        debug(f"Callback listener on {self._config.oauth.callback_host}:{port}")

        loop = asyncio.get_running_loop()
        receipt = PendingReceipt(
            redirect_uri=self._config.loopback_callback_url(port),
            waiter=waiter,
            port=port,
            deadline=loop.time() + self._config.oauth.timeout_seconds,
            handle=server,
        )
        self._active = receipt
        return receipt

    def _bind(self, waiter: OneShot) -> _CallbackServer:
        oauth = self._config.oauth
        start = oauth.callback_port_start
        end = min(start + oauth.callback_port_range, 65536)
        for port in range(start, end):
            try:
                return _CallbackServer((oauth.callback_host, port), waiter)
            except OSError:
                continue
        raise NoPortAvailableError(
            f"No free port for the login callback in {start}-{end - 1}"
        )

    async def wait(self, receipt: PendingReceipt) -> AuthorizationCallback:
        loop = asyncio.get_running_loop()
        remaining = max(0.0, (receipt.deadline or loop.time()) - loop.time())
        timer = asyncio.ensure_future(asyncio.sleep(remaining))
        succeeded = False
        try:
            done, _ = await asyncio.wait(
                {receipt.waiter.future, timer}, return_when=asyncio.FIRST_COMPLETED
            )
            if receipt.waiter.future not in done:
                receipt.waiter.resolve(
                    CallbackTimeoutError(
                        f"No login callback within {self._config.oauth.timeout_seconds:g}s"
                    )
                )
            result = await receipt.waiter.future
            succeeded = True
            return result
        finally:
            timer.cancel()
            if succeeded:
                self._linger(receipt)
            else:
                await self.cancel(receipt)

    def _linger(self, receipt: PendingReceipt) -> None:
        grace = self._config.oauth.shutdown_grace_seconds
        task = asyncio.ensure_future(self._stop_later(receipt, grace))
        self._draining.add(task)
        task.add_done_callback(self._draining.discard)

    async def _stop_later(self, receipt: PendingReceipt, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        finally:
            await self.cancel(receipt)

    async def cancel(self, receipt: PendingReceipt) -> None:
        if self._active is receipt:
            self._active = None
        receipt.waiter.abandon()
        server: Optional[_CallbackServer] = receipt.handle
        if server is None:
            return
        receipt.handle = None
        await asyncio.to_thread(server.shutdown)
        server.server_close()
        debug(f"Callback listener on port {receipt.port} stopped")

    async def close(self) -> None:
        """Stop the current listener and any listener still in its grace period."""
        for task in list(self._draining):
            task.cancel()
        if self._draining:
            await asyncio.gather(*self._draining, return_exceptions=True)
        if self._active is not None:
            await self.cancel(self._active)
