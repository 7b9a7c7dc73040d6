"""Platform signal sources for system snapshots."""

from dataclasses import dataclass

import psutil


class PsutilSignalSource:
    """PlatformSignalSource backed by psutil.

    Memory figures describe this process and the host. Connectivity is
    derived from the network interfaces that are up, ignoring loopback.
    Visibility is reported by the host application via ``set_visible``.
    """

    def __init__(self, visible: bool = True) -> None:
        self._process = psutil.Process()
        self._visible = visible

    def memory_usage(self) -> int | None:
        return int(self._process.memory_info().rss)

    def memory_limit(self) -> int | None:
        return int(psutil.virtual_memory().total)

    def _active_interfaces(self) -> list[str]:
        return [
            name
            for name, stats in psutil.net_if_stats().items()
            if stats.isup and not name.startswith("lo")
        ]

    def connection_type(self) -> str | None:
        active = self._active_interfaces()
        return active[0] if active else None

    def is_online(self) -> bool:
        return bool(self._active_interfaces())

    def is_visible(self) -> bool:
        return self._visible

    def set_visible(self, visible: bool) -> None:
        """Record whether the application is in the foreground."""
        self._visible = visible


@dataclass
class StaticSignalSource:
    """PlatformSignalSource returning fixed, settable values."""

    memory: int | None = None
    limit: int | None = None
    connection: str | None = None
    online: bool = True
    visible: bool = True

    def memory_usage(self) -> int | None:
        return self.memory

    def memory_limit(self) -> int | None:
        return self.limit

    def connection_type(self) -> str | None:
        return self.connection

    def is_online(self) -> bool:
        return self.online

    def is_visible(self) -> bool:
        return self.visible
