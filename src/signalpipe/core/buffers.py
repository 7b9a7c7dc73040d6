"""In-memory buffers for log entries and metric records.

RingBuffer provides bounded storage that evicts the oldest item when
full. LogBuffer is the logger's unbounded batch buffer, drained whole by
the flush scheduler and refilled from the front when a delivery fails.
"""

from collections import deque
from collections.abc import Iterator, Sequence
from typing import Generic, TypeVar

from signalpipe.core.models import LogEntry

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Fixed-size FIFO buffer.

    When the buffer is full, appending evicts exactly one item from the
    front, so the length never exceeds ``max_size``.

    Args:
        max_size: Maximum number of items to store.
    """

    def __init__(self, max_size: int) -> None:
        self._buffer: deque[T] = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._buffer.maxlen or 0

    def append(self, item: T) -> None:
        """Append an item, evicting the oldest if full."""
        self._buffer.append(item)

    def snapshot(self) -> list[T]:
        """Return the items as a new list, oldest first."""
        return list(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)

    def __iter__(self) -> Iterator[T]:
        return iter(self._buffer)


class LogBuffer:
    """Pending log entries awaiting delivery, in call order."""

    def __init__(self) -> None:
        self._entries: deque[LogEntry] = deque()

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def drain(self) -> list[LogEntry]:
        """Remove and return every pending entry."""
        batch = list(self._entries)
        self._entries.clear()
        return batch

    def requeue(self, batch: Sequence[LogEntry]) -> None:
        """Put a failed batch back in front of entries logged since."""
        self._entries.extendleft(reversed(batch))

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
