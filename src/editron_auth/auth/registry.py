"""In-memory session state owned by one orchestrator.

:class:`SessionRegistry` holds the ordered :class:`~editron_auth.models.Server`
records and the ``server_id -> AccessToken`` map. :class:`SessionSlot` holds
the single in-flight :class:`OAuthSession`.

Both are guarded by a :class:`threading.Lock` because the loopback listener
runs on its own thread. The lock is held only around dictionary work and is
never held across an ``await``; persistence happens after release, on
snapshots returned by :meth:`SessionRegistry.servers` and
:meth:`SessionRegistry.tokens`.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from editron_auth.auth.correlation import CorrelationMaterial
from editron_auth.models import AccessToken, Server


@dataclass(frozen=True)
class OAuthSession:
    """Transient state of one login attempt.

    Attributes:
        material: Correlation material generated for the attempt.
        redirect_uri: Redirect target registered with the backend.
        port: Bound loopback port, ``None`` for deep links.
        deadline: Loop time after which the loopback wait gives up.
    """

    material: CorrelationMaterial
    redirect_uri: str
    port: Optional[int] = None
    deadline: Optional[float] = None


class SessionRegistry:
    """Servers and tokens known to this client."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._servers: dict[str, Server] = {}
        self._tokens: dict[str, AccessToken] = {}

    # --- servers ---

    def servers(self) -> list[Server]:
        """Snapshot of all servers in insertion order."""
        with self._lock:
            return list(self._servers.values())

    def get_server(self, server_id: str) -> Optional[Server]:
        with self._lock:
            return self._servers.get(server_id)

    def save_server(self, server: Server) -> None:
        """Insert or replace *server*, keeping the position of an existing entry."""
        with self._lock:
            self._servers[server.id] = server

    # --- tokens ---

    def tokens(self) -> dict[str, AccessToken]:
        with self._lock:
            return dict(self._tokens)

    def get_token(self, server_id: str) -> Optional[AccessToken]:
        with self._lock:
            return self._tokens.get(server_id)

    def has_token(self, server_id: str) -> bool:
        with self._lock:
            return server_id in self._tokens

    def save_token(self, token: AccessToken) -> None:
        """Store *token*, replacing any token held for the same server."""
        with self._lock:
            self._tokens[token.server_id] = token

    def remove_token(self, server_id: str) -> Optional[AccessToken]:
        """Drop the token for *server_id* and return it, or ``None`` if absent."""
        with self._lock:
            return self._tokens.pop(server_id, None)

    def replace_all(self, servers: list[Server], tokens: list[AccessToken]) -> None:
        """Replace the whole registry, e.g. with state restored from disk."""
        with self._lock:
            self._servers = {s.id: s for s in servers}
            self._tokens = {t.server_id: t for t in tokens}


class SessionSlot:
    """Holds at most one :class:`OAuthSession`.

    :meth:`take` is an atomic take-and-clear, so when two callbacks race to
    finalize the same attempt exactly one of them gets the session.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session: Optional[OAuthSession] = None

    def put(self, session: OAuthSession) -> None:
        with self._lock:
            self._session = session

    def take(self) -> Optional[OAuthSession]:
        with self._lock:
            session, self._session = self._session, None
            return session

    def peek(self) -> Optional[OAuthSession]:
        with self._lock:
            return self._session

    def discard(self, session: OAuthSession) -> bool:
        """Clear the slot only if it still holds *session*."""
        with self._lock:
            if self._session is not session:
                return False
            self._session = None
            return True

    def clear(self) -> None:
        with self._lock:
            self._session = None
