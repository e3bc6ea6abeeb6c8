"""Deep-link callback receiver.

The operating system hands the application URIs of its registered scheme;
the host forwards each one to :meth:`DeepLinkReceiver.handle_uri`. Only
``editron-app://auth/callback?status=success&code=...`` completes a login.
Everything else is ignored without failing the attempt, because unrelated
deep links arrive through the same channel.

There is no timeout: nothing is bound, so a pending attempt simply waits
until a matching URI arrives or a new attempt replaces it.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs, urlparse

from editron_auth.auth.correlation import CorrelationMaterial
from editron_auth.auth.receivers.base import (
    AuthorizationCallback,
    CallbackReceiver,
    OneShot,
    Outcome,
    PendingReceipt,
)
from editron_auth.exceptions import MalformedResponseError
from editron_auth.models import AppConfig, CallbackTransport
from editron_auth.output import debug

CALLBACK_HOST = "auth"
CALLBACK_PATH = "/callback"


class DeepLinkReceiver(CallbackReceiver):
    """Receives the redirect as an OS-delivered custom-scheme URI.

    :meth:`handle_uri` may be called from any thread.
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._active: Optional[PendingReceipt] = None

    @property
    def transport(self) -> CallbackTransport:
        return CallbackTransport.DEEP_LINK

    async def begin(self, material: CorrelationMaterial) -> PendingReceipt:
        await self.close()
        receipt = PendingReceipt(
            redirect_uri=self._config.deep_link_callback_url(),
            waiter=OneShot(),
        )
        self._active = receipt
        return receipt

    async def wait(self, receipt: PendingReceipt) -> AuthorizationCallback:
        try:
            return await receipt.waiter.future
        finally:
            if self._active is receipt:
                self._active = None

    async def cancel(self, receipt: PendingReceipt) -> None:
        if self._active is receipt:
            self._active = None
        receipt.waiter.abandon()

    async def close(self) -> None:
        if self._active is not None:
            await self.cancel(self._active)

    def handle_uri(self, uri: str) -> bool:
        """Offer an OS-delivered URI to the pending attempt.

        Returns:
            ``True`` when the URI was a successful login callback and was
            delivered to a pending attempt, ``False`` when it was ignored.
        """
        try:
            parsed = urlparse(uri)
        except ValueError:
            debug("Ignoring unparseable deep link")
            return False

        if (
            parsed.scheme != self._config.oauth.deep_link_scheme
            or parsed.netloc != CALLBACK_HOST
            or parsed.path != CALLBACK_PATH
        ):
            debug(f"Ignoring deep link for {parsed.scheme}://{parsed.netloc}{parsed.path}")
            return False

        params = parse_qs(parsed.query)
        status = params.get("status", [None])[0]
        if status != "success":
            debug(f"Ignoring login deep link with status {status!r}")
            return False

        receipt = self._active
        if receipt is None:
            debug("Ignoring login deep link: no login pending")
            return False

        code = params.get("code", [None])[0]
        if not code:
            outcome: Outcome = MalformedResponseError(
                "Login callback reported success without an authorization code"
            )
        else:
            outcome = AuthorizationCallback(code=code)
        return receipt.waiter.resolve(outcome)
