"""Tests for the key-value stores."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from taskhub.core.errors import PersistError
from taskhub.core.kv_store import InMemoryKeyValueStore, SQLiteKeyValueStore


@pytest.fixture
async def sqlite_store(tmp_path: Path):
    store = SQLiteKeyValueStore(tmp_path / "data" / "taskhub.db")
    await store.init()
    yield store
    await store.close()


@pytest.mark.integration
class TestSQLiteKeyValueStore:
    async def test_set_get_overwrite(self, sqlite_store: SQLiteKeyValueStore) -> None:
        assert await sqlite_store.get("SavedTasks_Personal") is None

        await sqlite_store.set("SavedTasks_Personal", "[]")
        await sqlite_store.set("SavedTasks_Personal", '[{"id": "a"}]')

        assert await sqlite_store.get("SavedTasks_Personal") == '[{"id": "a"}]'

    async def test_delete(self, sqlite_store: SQLiteKeyValueStore) -> None:
        await sqlite_store.set("k", "v")

        await sqlite_store.delete("k")
        await sqlite_store.delete("never-set")

        assert await sqlite_store.get("k") is None

    async def test_keys_with_pattern(self, sqlite_store: SQLiteKeyValueStore) -> None:
        for key in ("SavedTasks_Personal", "SavedTasks_Work", "CurrentUserProfile"):
            await sqlite_store.set(key, "x")

        assert await sqlite_store.keys("SavedTasks_*") == ["SavedTasks_Personal", "SavedTasks_Work"]

    async def test_data_survives_reopen(self, tmp_path: Path) -> None:
        path = tmp_path / "taskhub.db"
        store = SQLiteKeyValueStore(path)
        await store.set("k", "v")
        await store.close()

        reopened = SQLiteKeyValueStore(path)
        try:
            assert await reopened.get("k") == "v"
        finally:
            await reopened.close()

    async def test_unopened_connection_raises_persist_error(self, tmp_path: Path) -> None:
        store = SQLiteKeyValueStore(tmp_path / "taskhub.db")

        with patch.object(store, "init", AsyncMock()), pytest.raises(PersistError, match="not open"):
            await store.get("k")


@pytest.mark.unit
class TestInMemoryKeyValueStore:
    async def test_basic_operations(self) -> None:
        store = InMemoryKeyValueStore({"a": "1"})

        await store.set("b", "2")
        await store.delete("a")

        assert await store.get("a") is None
        assert await store.keys() == ["b"]
