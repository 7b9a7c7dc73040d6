"""SQLite durable store for log entries.

Entries live as one JSON array under a fixed key in a key/value table,
truncated to the newest ``max_entries`` on every write. Async methods use
aiosqlite; ``read_sync`` uses the standard sqlite3 module for non-async
contexts. For :memory: databases the sync and async sides are separate
databases, since in-memory databases are connection-scoped in SQLite.
"""

import asyncio
import json
import sqlite3
import threading
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite

from signalpipe.core.encoding.wire import entry_from_dict, entry_to_dict
from signalpipe.core.models import LogEntry

STORAGE_KEY = "app_logs"
MAX_PERSISTED_ENTRIES = 1000

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at REAL NOT NULL
);
"""

_SELECT_VALUE = """
SELECT value FROM kv_store WHERE key = ?
"""

_UPSERT_VALUE = """
INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
"""

_DELETE_VALUE = """
DELETE FROM kv_store WHERE key = ?
"""


def _safe_json_loads(data: str | None) -> list[dict[str, Any]]:
    """Parse a persisted JSON array, returning [] when missing or corrupt."""
    if data is None:
        return []
    try:
        result = json.loads(data)
    except json.JSONDecodeError:
        return []
    return result if isinstance(result, list) else []


def _to_entries(items: list[dict[str, Any]]) -> list[LogEntry]:
    """Rebuild entries, skipping records that no longer parse."""
    entries = []
    for item in items:
        try:
            entries.append(entry_from_dict(item))
        except (KeyError, TypeError, ValueError):
            continue
    return entries


class SQLiteLogStore:
    """SQLite implementation of LogStorePort.

    Args:
        db_path: Database file path, or ":memory:".
        key: Key the entry array is stored under.
        max_entries: Number of newest entries kept on every write.
    """

    def __init__(
        self,
        db_path: str,
        key: str = STORAGE_KEY,
        max_entries: int = MAX_PERSISTED_ENTRIES,
    ) -> None:
        self._db_path = db_path
        self._key = key
        self._max_entries = max_entries
        self._initialized = False
        self._init_lock: asyncio.Lock | None = None
        self._write_lock: asyncio.Lock | None = None
        self._persistent_conn: aiosqlite.Connection | None = None
        # Sync state (uses standard sqlite3 module)
        self._sync_initialized = False
        self._sync_lock = threading.Lock()
        self._sync_conn: sqlite3.Connection | None = None

    def _get_init_lock(self) -> asyncio.Lock:
        """Get or create the initialization lock (lazy to avoid event loop issues)."""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    def _get_write_lock(self) -> asyncio.Lock:
        """Get or create the lock serializing read-modify-write cycles."""
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        return self._write_lock

    async def _ensure_initialized(self) -> None:
        """Initialize database schema once."""
        if self._initialized:
            return
        async with self._get_init_lock():
            if self._initialized:
                return
            if self._db_path == ":memory:":
                # For :memory: DBs, keep a persistent connection
                self._persistent_conn = await aiosqlite.connect(":memory:")
                await self._persistent_conn.executescript(_SCHEMA)
            else:
                async with aiosqlite.connect(self._db_path) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.executescript(_SCHEMA)
            self._initialized = True

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection, closing it afterwards for file databases."""
        await self._ensure_initialized()
        if self._db_path == ":memory:":
            if self._persistent_conn is None:
                raise RuntimeError("Memory database connection not initialized")
            yield self._persistent_conn
            return
        db = await aiosqlite.connect(self._db_path)
        try:
            yield db
        finally:
            await db.close()

    async def _load(self, db: aiosqlite.Connection) -> list[dict[str, Any]]:
        async with db.execute(_SELECT_VALUE, (self._key,)) as cursor:
            row = await cursor.fetchone()
        return _safe_json_loads(row[0] if row else None)

    async def append(self, entries: Sequence[LogEntry]) -> None:
        """Append entries to the persisted array and truncate it."""
        async with self._get_write_lock():
            async with self._connection() as db:
                items = await self._load(db)
                items.extend(entry_to_dict(e) for e in entries)
                trimmed = items[-self._max_entries :]
                await db.execute(
                    _UPSERT_VALUE,
                    (self._key, json.dumps(trimmed, default=str), time.time()),
                )
                await db.commit()

    async def read(self) -> list[LogEntry]:
        """Return all persisted entries, oldest first."""
        async with self._connection() as db:
            return _to_entries(await self._load(db))

    async def clear(self) -> None:
        """Remove the persisted array."""
        async with self._get_write_lock():
            async with self._connection() as db:
                await db.execute(_DELETE_VALUE, (self._key,))
                await db.commit()

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None
            self._initialized = False

    # --- Sync methods using standard sqlite3 module ---

    def _get_sync_connection(self) -> sqlite3.Connection:
        """Get a sync connection, initializing the schema once."""
        with self._sync_lock:
            if not self._sync_initialized:
                if self._db_path == ":memory:":
                    self._sync_conn = sqlite3.connect(":memory:")
                    self._sync_conn.executescript(_SCHEMA)
                else:
                    with sqlite3.connect(self._db_path) as db:
                        db.executescript(_SCHEMA)
                self._sync_initialized = True
        if self._db_path == ":memory:":
            assert self._sync_conn is not None
            return self._sync_conn
        return sqlite3.connect(self._db_path)

    def read_sync(self) -> list[LogEntry]:
        """Synchronous read for non-async contexts (testing, shutdown hooks)."""
        conn = self._get_sync_connection()
        try:
            row = conn.execute(_SELECT_VALUE, (self._key,)).fetchone()
            return _to_entries(_safe_json_loads(row[0] if row else None))
        finally:
            if self._db_path != ":memory:":
                conn.close()
