"""Key-value storage for profile-scoped JSON documents.

Collections (tasks, categories, filters) are stored as whole JSON documents
under string keys, the same way the app keeps them in its preferences
container. Two implementations share one interface: a SQLite-backed store
for real use and an in-memory store for ephemeral sessions and tests.
"""

import fnmatch
import logging
import time
from pathlib import Path
from typing import Protocol

import aiosqlite

from taskhub.core.errors import PersistError


logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Async string key-value store."""

    async def init(self) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def keys(self, pattern: str = "*") -> list[str]: ...

    async def close(self) -> None: ...


class SQLiteKeyValueStore:
    """SQLite-backed key-value store using a single `kv` table."""

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the store; the connection is opened lazily by init()."""
        self._db_path = Path(db_path).resolve()
        self._conn: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def init(self) -> None:
        """Open the connection and create the schema if missing."""
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = await aiosqlite.connect(str(self._db_path))
            await conn.execute("PRAGMA journal_mode = WAL")
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated REAL NOT NULL
                )
                """
            )
            await conn.commit()
        except aiosqlite.Error as e:
            msg = f"Failed to open key-value store at {self._db_path}: {e}"
            raise PersistError(msg) from e

        self._conn = conn
        logger.info("Opened key-value store", extra={"db_path": str(self._db_path)})

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.init()
        if self._conn is None:
            msg = f"Key-value store at {self._db_path} is not open"
            raise PersistError(msg)
        return self._conn

    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        try:
            conn = await self._connection()
            cursor = await conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error("kv_get_failed", extra={"key": key, "error": str(e)})
            msg = f"Failed to read {key}: {e}"
            raise PersistError(msg) from e

        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        """Insert or replace the value stored under key."""
        try:
            conn = await self._connection()
            await conn.execute(
                "INSERT INTO kv (key, value, updated) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated = excluded.updated",
                (key, value, time.time()),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            logger.error("kv_set_failed", extra={"key": key, "error": str(e)})
            msg = f"Failed to write {key}: {e}"
            raise PersistError(msg) from e

        logger.debug("Stored key %s (%d bytes)", key, len(value))

    async def delete(self, key: str) -> None:
        """Delete key if present."""
        try:
            conn = await self._connection()
            await conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            await conn.commit()
        except aiosqlite.Error as e:
            logger.error("kv_delete_failed", extra={"key": key, "error": str(e)})
            msg = f"Failed to delete {key}: {e}"
            raise PersistError(msg) from e

    async def keys(self, pattern: str = "*") -> list[str]:
        """Return keys matching a glob pattern (e.g. 'SavedTasks_*')."""
        try:
            conn = await self._connection()
            cursor = await conn.execute("SELECT key FROM kv ORDER BY key")
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            msg = f"Failed to list keys: {e}"
            raise PersistError(msg) from e

        return [row[0] for row in rows if fnmatch.fnmatch(row[0], pattern)]

    async def close(self) -> None:
        """Close the connection."""
        if self._conn is None:
            return
        try:
            await self._conn.close()
        except aiosqlite.Error as e:
            logger.warning("Error closing key-value store", extra={"error": str(e)})
        finally:
            self._conn = None
        logger.info("Closed key-value store", extra={"db_path": str(self._db_path)})


class InMemoryKeyValueStore:
    """Dictionary-backed key-value store for ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def init(self) -> None:
        return

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, pattern: str = "*") -> list[str]:
        return sorted(key for key in self._data if fnmatch.fnmatch(key, pattern))

    async def close(self) -> None:
        return
