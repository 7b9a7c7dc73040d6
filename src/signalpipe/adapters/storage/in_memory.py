"""In-memory durable-store stand-in."""

from collections import deque
from collections.abc import Sequence

from signalpipe.adapters.storage.sqlite import MAX_PERSISTED_ENTRIES
from signalpipe.core.models import LogEntry


class InMemoryLogStore:
    """In-memory implementation of LogStorePort.

    Keeps the newest ``max_entries`` entries. Suitable for testing and for
    hosts without a writable filesystem; nothing survives the process.
    """

    def __init__(self, max_entries: int = MAX_PERSISTED_ENTRIES) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)

    async def append(self, entries: Sequence[LogEntry]) -> None:
        """Append entries, dropping the oldest beyond the cap."""
        self._entries.extend(entries)

    async def read(self) -> list[LogEntry]:
        """Return all entries, oldest first."""
        return list(self._entries)

    async def clear(self) -> None:
        self._entries.clear()
