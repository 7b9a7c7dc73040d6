"""Port interfaces for the pipeline's outer boundaries.

These protocols define the contracts that adapters must implement.
The core depends only on these interfaces, not concrete implementations.
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from signalpipe.core.models import LogEntry


@runtime_checkable
class TransportPort(Protocol):
    """Port for delivering a batch payload to the remote collector.

    Examples: HttpTransport.
    """

    async def send(self, payload: dict[str, Any]) -> None:
        """Deliver one batch payload.

        Raises:
            TransportError: If the collector did not accept the batch.
        """
        ...


@runtime_checkable
class LogStorePort(Protocol):
    """Port for the durable local fallback store.

    Adapters keep a single capped list of entries, newest last.
    Examples: InMemoryLogStore, SQLiteLogStore.
    """

    async def append(self, entries: Sequence[LogEntry]) -> None:
        """Append entries, dropping the oldest beyond the store's cap."""
        ...

    async def read(self) -> list[LogEntry]:
        """Return all persisted entries, oldest first."""
        ...


@runtime_checkable
class PlatformSignalSource(Protocol):
    """Port for host signals sampled into system metrics.

    Examples: PsutilSignalSource, StaticSignalSource.
    """

    def memory_usage(self) -> int | None:
        """Bytes of memory used by this process, if known."""
        ...

    def memory_limit(self) -> int | None:
        """Bytes of memory available to this process, if known."""
        ...

    def connection_type(self) -> str | None:
        """Name of the active network connection, if known."""
        ...

    def is_online(self) -> bool:
        """Whether the host currently has network connectivity."""
        ...

    def is_visible(self) -> bool:
        """Whether the application is in the foreground."""
        ...


@runtime_checkable
class ConsoleSinkPort(Protocol):
    """Port for synchronous local rendering of log entries.

    Examples: ConsoleSink.
    """

    def emit(self, entry: LogEntry) -> None:
        """Render one entry."""
        ...
