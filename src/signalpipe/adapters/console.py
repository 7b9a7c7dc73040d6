"""Console sink rendering log entries through Python's logging module.

Entries are written to the ``signalpipe.console`` logger at the stdlib
level matching their severity, so host applications control output with
ordinary logging configuration.
"""

import logging
from datetime import UTC, datetime

from signalpipe.core.models import LogEntry, LogLevel

CONSOLE_LOGGER_NAME = "signalpipe.console"

# Map pipeline levels onto stdlib logging levels
_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.FATAL: logging.CRITICAL,
}


def stdlib_level(level: LogLevel) -> int:
    """Return the stdlib logging level for a pipeline level."""
    return _STDLIB_LEVELS[level]


def format_entry(entry: LogEntry) -> str:
    """Format the headline of an entry as ``[LEVEL] [correlation] time - message``."""
    correlation = f" [{entry.correlation_id}]" if entry.correlation_id else ""
    timestamp = datetime.fromtimestamp(entry.timestamp, tz=UTC).isoformat()
    return f"[{entry.level.name}]{correlation} {timestamp} - {entry.message}"


class ConsoleSink:
    """Synchronous sink that writes entries to a stdlib logger.

    Example:
        ```python
        logging.basicConfig(level=logging.DEBUG)
        sink = ConsoleSink()
        ```
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        """Initialize the sink.

        Args:
            logger: Target logger. Defaults to ``signalpipe.console``.
        """
        self._logger = logger or logging.getLogger(CONSOLE_LOGGER_NAME)

    def emit(self, entry: LogEntry) -> None:
        """Render an entry plus its metadata, error and performance details."""
        level = stdlib_level(entry.level)
        self._logger.log(level, format_entry(entry))
        if entry.metadata:
            self._logger.log(level, "Metadata: %s", entry.metadata)
        if entry.error is not None:
            self._logger.error(
                "Error details: %s: %s", entry.error.name, entry.error.message
            )
            if entry.error.stack:
                self._logger.error("%s", entry.error.stack)
        if entry.performance is not None:
            self._logger.info(
                "Performance: duration=%s memory_usage=%s",
                entry.performance.duration,
                entry.performance.memory_usage,
            )
