"""Tests for the key-value stores backing session persistence."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from editron_auth.exceptions import PersistenceError
from editron_auth.store import InMemoryStore, JsonFileStore


@pytest.fixture()
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "tokens.json"


class TestJsonFileStore:
    def test_missing_file_is_empty(self, store_path: Path) -> None:
        store = JsonFileStore(store_path)
        assert store.get("tokens") is None
        assert not store_path.exists()

    def test_save_and_reload(self, store_path: Path) -> None:
        store = JsonFileStore(store_path)
        store.set("tokens", {"backend_v1": {"access_token": "tok"}})
        store.save()

        reloaded = JsonFileStore(store_path)
        assert reloaded.get("tokens") == {"backend_v1": {"access_token": "tok"}}

    def test_set_is_not_durable_until_save(self, store_path: Path) -> None:
        store = JsonFileStore(store_path)
        store.set("servers", [])
        assert not store_path.exists()

    def test_delete(self, store_path: Path) -> None:
        store = JsonFileStore(store_path)
        store.set("a", 1)
        store.set("b", 2)
        store.delete("a")
        store.delete("missing")
        store.save()
        assert json.loads(store_path.read_text(encoding="utf-8")) == {"b": 2}

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_file_permissions(self, store_path: Path) -> None:
        store = JsonFileStore(store_path)
        store.set("tokens", {})
        store.save()
        assert stat.S_IMODE(store_path.stat().st_mode) == 0o600

    def test_malformed_json(self, store_path: Path) -> None:
        store_path.parent.mkdir(parents=True)
        store_path.write_text("{broken", encoding="utf-8")
        with pytest.raises(PersistenceError, match="Malformed"):
            JsonFileStore(store_path).get("tokens")

    def test_non_object_document(self, store_path: Path) -> None:
        store_path.parent.mkdir(parents=True)
        store_path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(PersistenceError, match="expected a JSON object"):
            JsonFileStore(store_path).get("tokens")

    def test_unwritable_location(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        store = JsonFileStore(blocker / "tokens.json")
        store.set("tokens", {})
        with pytest.raises(PersistenceError, match="Cannot write"):
            store.save()


class TestInMemoryStore:
    def test_saved_snapshot_is_independent(self) -> None:
        store = InMemoryStore()
        store.set("servers", [{"id": "backend_v1"}])
        store.save()
        store.set("servers", [])
        assert store.saved == {"servers": [{"id": "backend_v1"}]}
        assert store.save_count == 1
