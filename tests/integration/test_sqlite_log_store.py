"""Integration tests for the SQLite and in-memory log stores."""

import json
import sqlite3

import pytest

from signalpipe.adapters.storage import (
    MAX_PERSISTED_ENTRIES,
    STORAGE_KEY,
    InMemoryLogStore,
    SQLiteLogStore,
)
from signalpipe.core.models import CorrelationContext, LogEntry, LogLevel
from signalpipe.core.ports import LogStorePort

pytestmark = [pytest.mark.storage, pytest.mark.tier(2)]


def _entries(count: int, start: int = 0) -> list[LogEntry]:
    return [
        LogEntry(timestamp=1000.0 + i, level=LogLevel.INFO, message=f"msg {i}")
        for i in range(start, start + count)
    ]


class TestSQLiteLogStore:
    """Tests for SQLiteLogStore."""

    def test_implements_log_store_port(self, log_db_path: str) -> None:
        assert isinstance(SQLiteLogStore(log_db_path), LogStorePort)

    async def test_append_and_read(self, log_db_path: str) -> None:
        store = SQLiteLogStore(log_db_path)
        entries = _entries(3)

        await store.append(entries)

        assert await store.read() == entries

    async def test_read_empty_store(self, log_db_path: str) -> None:
        assert await SQLiteLogStore(log_db_path).read() == []

    async def test_appends_accumulate_in_order(self, log_db_path: str) -> None:
        store = SQLiteLogStore(log_db_path)

        await store.append(_entries(2))
        await store.append(_entries(2, start=2))

        assert [e.message for e in await store.read()] == [
            "msg 0",
            "msg 1",
            "msg 2",
            "msg 3",
        ]

    async def test_truncates_to_newest_entries(self, log_db_path: str) -> None:
        store = SQLiteLogStore(log_db_path)

        await store.append(_entries(MAX_PERSISTED_ENTRIES - 5))
        await store.append(_entries(10, start=MAX_PERSISTED_ENTRIES - 5))

        result = await store.read()
        assert len(result) == MAX_PERSISTED_ENTRIES
        assert result[0].message == "msg 5"
        assert result[-1].message == f"msg {MAX_PERSISTED_ENTRIES + 4}"

    async def test_custom_cap(self, log_db_path: str) -> None:
        store = SQLiteLogStore(log_db_path, max_entries=2)

        await store.append(_entries(5))

        assert [e.message for e in await store.read()] == ["msg 3", "msg 4"]

    async def test_entries_keep_all_fields(self, log_db_path: str) -> None:
        context = CorrelationContext(correlation_id="corr_1", user_id="u1")
        entry = LogEntry(
            timestamp=1700000000.5,
            level=LogLevel.ERROR,
            message="failed",
            correlation_id=context.correlation_id,
            user_id=context.user_id,
            metadata={"order_id": 7},
        )
        store = SQLiteLogStore(log_db_path)

        await store.append([entry])

        assert await store.read() == [entry]

    async def test_data_survives_new_instance(self, log_db_path: str) -> None:
        await SQLiteLogStore(log_db_path).append(_entries(2))

        assert len(await SQLiteLogStore(log_db_path).read()) == 2

    async def test_layout_is_single_json_array_under_key(
        self, log_db_path: str
    ) -> None:
        store = SQLiteLogStore(log_db_path)
        await store.append(_entries(2))

        with sqlite3.connect(log_db_path) as db:
            row = db.execute(
                "SELECT value FROM kv_store WHERE key = ?", (STORAGE_KEY,)
            ).fetchone()

        value = json.loads(row[0])
        assert isinstance(value, list)
        assert value[0]["message"] == "msg 0"
        assert value[0]["level"] == "INFO"

    async def test_corrupt_value_reads_as_empty(self, log_db_path: str) -> None:
        store = SQLiteLogStore(log_db_path)
        await store.append(_entries(1))
        with sqlite3.connect(log_db_path) as db:
            db.execute(
                "UPDATE kv_store SET value = ? WHERE key = ?",
                ("{not json", STORAGE_KEY),
            )

        assert await store.read() == []

        await store.append(_entries(1, start=5))
        assert [e.message for e in await store.read()] == ["msg 5"]

    async def test_unparseable_records_are_skipped(self, log_db_path: str) -> None:
        store = SQLiteLogStore(log_db_path)
        await store.append(_entries(1))
        mixed = json.dumps(
            [{"timestamp": "nope", "level": "INFO", "message": "x"}, {"level": "INFO"}]
            + [
                {
                    "timestamp": "1970-01-01T00:00:00+00:00",
                    "level": "INFO",
                    "message": "ok",
                }
            ]
        )
        with sqlite3.connect(log_db_path) as db:
            db.execute(
                "UPDATE kv_store SET value = ? WHERE key = ?", (mixed, STORAGE_KEY)
            )

        assert [e.message for e in await store.read()] == ["ok"]

    async def test_clear(self, log_db_path: str) -> None:
        store = SQLiteLogStore(log_db_path)
        await store.append(_entries(2))

        await store.clear()

        assert await store.read() == []

    async def test_memory_database_keeps_connection(self) -> None:
        store = SQLiteLogStore(":memory:")

        await store.append(_entries(2))
        result = await store.read()
        await store.close()

        assert len(result) == 2

    async def test_read_sync_sees_async_writes(self, log_db_path: str) -> None:
        store = SQLiteLogStore(log_db_path)
        await store.append(_entries(3))

        assert [e.message for e in store.read_sync()] == ["msg 0", "msg 1", "msg 2"]


class TestInMemoryLogStore:
    """Tests for InMemoryLogStore."""

    def test_implements_log_store_port(self) -> None:
        assert isinstance(InMemoryLogStore(), LogStorePort)

    async def test_append_and_read(self) -> None:
        store = InMemoryLogStore()
        entries = _entries(2)

        await store.append(entries)

        assert await store.read() == entries

    async def test_keeps_newest_entries(self) -> None:
        store = InMemoryLogStore(max_entries=3)

        await store.append(_entries(5))

        assert [e.message for e in await store.read()] == ["msg 2", "msg 3", "msg 4"]

    async def test_clear(self) -> None:
        store = InMemoryLogStore()
        await store.append(_entries(1))

        await store.clear()

        assert await store.read() == []
