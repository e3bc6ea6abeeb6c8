"""Bridge between the in-memory registry and durable key-value stores.

Two documents are kept, each rewritten in full on every flush:

* the servers document, key ``"servers"``: an ordered list of
  :class:`~editron_auth.models.Server` records;
* the tokens document, key ``"tokens"``: a ``server_id -> AccessToken``
  object.

Records are serialized with ``model_dump(mode="json", by_alias=True)`` so the
on-disk shape matches the backend's camelCase profile fields.
"""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import ValidationError

from editron_auth.auth.registry import SessionRegistry
from editron_auth.exceptions import PersistenceError
from editron_auth.models import AccessToken, Server
from editron_auth.output import debug, error
from editron_auth.store import KeyValueStore

SERVERS_KEY = "servers"
TOKENS_KEY = "tokens"


class PersistenceBridge:
    """Loads and flushes :class:`SessionRegistry` state.

    Flushes are serialized by an :class:`asyncio.Lock` and the snapshot is
    taken inside it, so a later flush can never be overwritten by an
    earlier one that finished writing after it. The blocking file write
    itself runs in a worker thread.

    Args:
        servers_store: Store for the servers document.
        tokens_store: Store for the tokens document.
    """

    def __init__(self, servers_store: KeyValueStore, tokens_store: KeyValueStore) -> None:
        self._servers_store = servers_store
        self._tokens_store = tokens_store
        self._flush_lock = asyncio.Lock()

    def load(self, registry: SessionRegistry) -> None:
        """Replace *registry* contents with the persisted state.

        A missing document or key means an empty collection.

        Raises:
            PersistenceError: If either document holds malformed records.
        """
        raw_servers = self._servers_store.get(SERVERS_KEY) or []
        raw_tokens = self._tokens_store.get(TOKENS_KEY) or {}
        if not isinstance(raw_servers, list):
            raise PersistenceError("Malformed servers document: expected a list")
        if not isinstance(raw_tokens, dict):
            raise PersistenceError("Malformed tokens document: expected an object")
        try:
            servers = [Server.model_validate(item) for item in raw_servers]
            tokens = [AccessToken.model_validate(item) for item in raw_tokens.values()]
        except ValidationError as exc:
            raise PersistenceError(f"Malformed session record: {exc}") from exc
        registry.replace_all(servers, tokens)
        debug(f"Restored {len(servers)} server(s) and {len(tokens)} token(s)")

    async def flush_servers(self, registry: SessionRegistry) -> None:
        async with self._flush_lock:
            payload = [s.model_dump(mode="json", by_alias=True) for s in registry.servers()]
            await self._write(self._servers_store, SERVERS_KEY, payload)

    async def flush_tokens(self, registry: SessionRegistry) -> None:
        async with self._flush_lock:
            payload = {
                server_id: token.model_dump(mode="json")
                for server_id, token in registry.tokens().items()
            }
            await self._write(self._tokens_store, TOKENS_KEY, payload)

    async def flush(self, registry: SessionRegistry) -> None:
        """Flush both documents."""
        await self.flush_tokens(registry)
        await self.flush_servers(registry)

    async def _write(self, store: KeyValueStore, key: str, payload: Any) -> None:
        store.set(key, payload)
        try:
            await asyncio.to_thread(store.save)
        except PersistenceError as exc:
            error(f"Failed to persist {key}: {exc}")
            raise
        except OSError as exc:
            error(f"Failed to persist {key}: {exc}")
            raise PersistenceError(f"Cannot persist {key}: {exc}") from exc
        debug(f"Flushed {key}")
