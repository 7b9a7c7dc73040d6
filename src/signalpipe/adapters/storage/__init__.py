"""Durable store adapters implementing LogStorePort."""

from signalpipe.adapters.storage.in_memory import InMemoryLogStore
from signalpipe.adapters.storage.sqlite import (
    MAX_PERSISTED_ENTRIES,
    STORAGE_KEY,
    SQLiteLogStore,
)

__all__ = [
    "MAX_PERSISTED_ENTRIES",
    "STORAGE_KEY",
    "InMemoryLogStore",
    "SQLiteLogStore",
]
