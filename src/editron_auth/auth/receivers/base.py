"""Common interface for authorization callback transports.

A :class:`CallbackReceiver` turns "the provider redirected the user back"
into an awaitable result. :meth:`~CallbackReceiver.begin` prepares the
transport for one attempt and returns a :class:`PendingReceipt` carrying the
redirect URI to register with the backend; :meth:`~CallbackReceiver.wait`
resolves it to an :class:`AuthorizationCallback` or raises.

Callbacks arrive on foreign threads (the loopback HTTP server) or from host
code, so resolution goes through :class:`OneShot`, which hands the outcome
to the event loop exactly once.
"""

from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from editron_auth.auth.correlation import CorrelationMaterial
from editron_auth.exceptions import NoActiveSessionError
from editron_auth.models import CallbackTransport


@dataclass(frozen=True)
class AuthorizationCallback:
    """What the provider sent back: the code and, when echoed, the ``state``."""

    code: str = field(repr=False)
    state: Optional[str] = field(default=None, repr=False)


Outcome = Union[AuthorizationCallback, BaseException]


class OneShot:
    """Thread-safe, resolve-once wrapper around an :class:`asyncio.Future`.

    Must be created on the event loop thread. :meth:`resolve` may be called
    from any thread; only the first call has an effect.
    """

    def __init__(self) -> None:
        self._loop = asyncio.get_running_loop()
        self.future: asyncio.Future[AuthorizationCallback] = self._loop.create_future()
        self._lock = threading.Lock()
        self._resolved = False

    @property
    def resolved(self) -> bool:
        with self._lock:
            return self._resolved

    def resolve(self, outcome: Outcome) -> bool:
        """Deliver *outcome*. Returns ``False`` if something got there first."""
        with self._lock:
            if self._resolved:
                return False
            self._resolved = True
        try:
            self._loop.call_soon_threadsafe(self._settle, outcome)
        except RuntimeError:
            # event loop already closed; nobody is waiting any more
            return False
        return True

    def _settle(self, outcome: Outcome) -> None:
        if self.future.done():
            return
        if isinstance(outcome, BaseException):
            self.future.set_exception(outcome)
        else:
            self.future.set_result(outcome)

    def abandon(self) -> None:
        """Fail a still-pending attempt because a newer one replaced it."""
        self.resolve(NoActiveSessionError("Login attempt was superseded"))


@dataclass
class PendingReceipt:
    """Handle for one attempt's callback.

    Attributes:
        redirect_uri: Redirect target to register with the backend.
        waiter: Resolve-once channel the callback is delivered through.
        port: Bound loopback port, ``None`` for deep links.
        deadline: Event-loop time at which the wait gives up, ``None`` when
            the transport has no timeout.
    """

    redirect_uri: str
    waiter: OneShot
    port: Optional[int] = None
    deadline: Optional[float] = None
    handle: Any = field(default=None, repr=False)


class CallbackReceiver(ABC):
    """One callback transport."""

    @property
    @abstractmethod
    def transport(self) -> CallbackTransport:
        """Which :class:`CallbackTransport` this receiver implements."""

    @abstractmethod
    async def begin(self, material: CorrelationMaterial) -> PendingReceipt:
        """Prepare to receive the callback for a new attempt.

        Any attempt still pending on this receiver is abandoned first.
        """

    @abstractmethod
    async def wait(self, receipt: PendingReceipt) -> AuthorizationCallback:
        """Wait for the callback belonging to *receipt*.

        Raises:
            AuthorizationDeniedError: The provider returned an ``error``.
            CallbackTimeoutError: The deadline passed first.
            NoActiveSessionError: A newer attempt replaced this one.
        """

    @abstractmethod
    async def cancel(self, receipt: PendingReceipt) -> None:
        """Release whatever *receipt* holds. Safe to call more than once."""

    @abstractmethod
    async def close(self) -> None:
        """Release everything, abandoning any pending attempt."""
