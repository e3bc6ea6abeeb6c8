"""Named events broadcast to the host application.

The orchestrator reports every login outcome twice: as the return value (or
exception) of the operation, and as an event on an :class:`EventBus` so a
UI can react asynchronously. Three events exist:

* :data:`LOGIN_SUCCESS` -- payload is the updated
  :class:`~editron_auth.models.Server`.
* :data:`LOGIN_FAILED` -- payload is the error message string.
* :data:`LOGOUT_SUCCESS` -- payload is the server id.

Listeners run synchronously in registration order. A listener that raises
is logged and skipped so it can never mask the operation's own result.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable

from editron_auth.output import debug, warning

LOGIN_SUCCESS = "login_success"
LOGIN_FAILED = "login_failed"
LOGOUT_SUCCESS = "logout_success"

Listener = Callable[[Any], None]


class EventBus:
    """Registry of listeners keyed by event name."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> None:
        """Subscribe *listener* to *event*.

        Args:
            event: Event name, usually one of the module constants.
            listener: Callable receiving the event payload.
        """
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        """Unsubscribe *listener*. Unknown listeners are ignored."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, payload: Any = None) -> None:
        """Deliver *payload* to every listener of *event*.

        The listener list is snapshotted first, so listeners may subscribe
        or unsubscribe while the event is being delivered.
        """
        listeners = list(self._listeners.get(event, []))
        debug(f"Emitting {event} to {len(listeners)} listener(s)")
        for listener in listeners:
            try:
                listener(payload)
            except Exception as exc:
                warning(f"Listener for '{event}' failed: {exc}")
