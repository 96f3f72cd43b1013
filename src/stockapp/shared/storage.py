"""Device-local key/value storage.

The response cache, favorites and watchlists all share one string store, so
every caller namespaces its own keys. Two backends:

- InMemoryStore: process lifetime only, used in tests and when no
  CACHE_DB_PATH is configured
- SQLiteStore: single-table key/value file in WAL mode; sqlite3 calls are
  blocking, so each one runs in a worker thread via asyncio.to_thread
"""

import asyncio
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Async key -> string store."""

    async def get_item(self, key: str) -> str | None: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...


class InMemoryStore:
    """Dict-backed store."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class SQLiteStore:
    """SQLite-backed store that survives restarts.

    Example:
        >>> store = SQLiteStore(Path("~/.stockapp/storage.db").expanduser())
        >>> await store.set_item("favorites", '["AAPL"]')
        >>> await store.get_item("favorites")
        '["AAPL"]'
        >>> store.close()
    """

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        # One connection shared across worker threads; the lock serializes use
        self._lock = threading.Lock()
        self._conn = self._connect()

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            isolation_level=None,  # autocommit
        )
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute(self._SCHEMA)
        logger.debug("Opened device store", extra={"db_path": str(self.db_path)})
        return conn

    def _get(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def _set(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def _remove(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    async def get_item(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
