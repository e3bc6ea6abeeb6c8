"""Key-value document stores backing the session registry.

The :class:`~editron_auth.auth.persistence.PersistenceBridge` only speaks to
the abstract :class:`KeyValueStore` interface, so hosts can plug in their own
storage. :class:`JsonFileStore` is the default: one JSON object per file
under the data directory (``servers.json`` and ``tokens.json``), written
atomically with ``0o600`` permissions so tokens are never world-readable.

A missing file is an empty store. A file that exists but does not hold a
JSON object raises :class:`~editron_auth.exceptions.PersistenceError`.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from editron_auth.config import _atomic_write
from editron_auth.exceptions import PersistenceError


class KeyValueStore(ABC):
    """A small document of named values that is saved as a whole.

    ``set`` and ``delete`` only touch the in-memory view; nothing reaches
    durable storage until :meth:`save` is called.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the value under *key*, or ``None`` when absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Stage *value* under *key*."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Stage removal of *key*. Removing an absent key is a no-op."""

    @abstractmethod
    def save(self) -> None:
        """Write the staged document to durable storage.

        Raises:
            PersistenceError: If the storage cannot be written.
        """


class InMemoryStore(KeyValueStore):
    """Non-durable store, for tests and hosts that manage persistence themselves."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})
        self.saved: dict[str, Any] = dict(self._data)
        self.save_count = 0

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def save(self) -> None:
        self.saved = json.loads(json.dumps(self._data))
        self.save_count += 1


class JsonFileStore(KeyValueStore):
    """A :class:`KeyValueStore` held in a single JSON file.

    The file is read lazily on first access and rewritten in full on every
    :meth:`save`.

    Args:
        path: Location of the JSON document.

    Example::

        store = JsonFileStore(get_data_dir() / "tokens.json")
        store.set("tokens", [...])
        store.save()
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._data: Optional[dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _document(self) -> dict[str, Any]:
        if self._data is None:
            self._data = self._read()
        return self._data

    def _read(self) -> dict[str, Any]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Malformed session file {self._path}: {exc}") from exc
        except OSError as exc:
            raise PersistenceError(f"Cannot read session file {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(
                f"Malformed session file {self._path}: expected a JSON object"
            )
        return data

    def get(self, key: str) -> Optional[Any]:
        return self._document().get(key)

    def set(self, key: str, value: Any) -> None:
        self._document()[key] = value

    def delete(self, key: str) -> None:
        self._document().pop(key, None)

    def save(self) -> None:
        text = json.dumps(self._document(), indent=2) + "\n"
        try:
            _atomic_write(self._path, text, mode=0o600)
        except OSError as exc:
            raise PersistenceError(f"Cannot write session file {self._path}: {exc}") from exc
