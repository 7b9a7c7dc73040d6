"""Structured leveled logger with correlation context and batched delivery."""

import logging
import time
import traceback
from typing import Literal

from signalpipe.core.buffers import LogBuffer
from signalpipe.core.config import LoggerConfig
from signalpipe.core.context import CorrelationContextManager
from signalpipe.core.encoding.wire import json_safe
from signalpipe.core.models import (
    CorrelationContext,
    ErrorInfo,
    LogEntry,
    LogLevel,
    Metadata,
    PerformanceInfo,
)
from signalpipe.core.ports import (
    ConsoleSinkPort,
    LogStorePort,
    PlatformSignalSource,
    TransportPort,
)
from signalpipe.core.sanitize import sanitize
from signalpipe.core.scheduler import INTERNAL_LOGGER_NAME, FlushScheduler

Lifecycle = Literal["mount", "update", "unmount"]

_internal_log = logging.getLogger(INTERNAL_LOGGER_NAME)


def error_info(error: BaseException | ErrorInfo, include_stack: bool) -> ErrorInfo:
    """Convert an exception to ErrorInfo, dropping the stack when disabled."""
    if isinstance(error, ErrorInfo):
        if include_stack or error.stack is None:
            return error
        return ErrorInfo(error.name, error.message)
    stack = None
    if include_stack:
        stack = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
    return ErrorInfo(name=type(error).__name__, message=str(error), stack=stack)


class Logger:
    """Leveled logger feeding a console sink and a batched remote/file buffer.

    Logging calls never raise and never suspend. Sink failures are reported
    through the ``signalpipe.internal`` stdlib logger.

    Example:
        ```python
        logger = Logger(LoggerConfig(batch_size=20), transport=HttpTransport(url))
        logger.start()
        logger.info("Order placed", {"order_id": 42})
        ```
    """

    def __init__(
        self,
        config: LoggerConfig,
        context: CorrelationContextManager | None = None,
        *,
        transport: TransportPort | None = None,
        store: LogStorePort | None = None,
        console: ConsoleSinkPort | None = None,
        signals: PlatformSignalSource | None = None,
    ) -> None:
        """Initialize the logger.

        Args:
            config: Logger configuration.
            context: Shared correlation context manager. A private one is
                created when omitted.
            transport: Remote delivery port.
            store: Durable fallback store.
            console: Console sink. Without one, console rendering is skipped
                even when ``enable_console`` is set.
            signals: Platform signal source for memory usage readings.
        """
        self._config = config
        self._context = context or CorrelationContextManager()
        self._console = console
        self._signals = signals
        self._buffer = LogBuffer()
        self._scheduler = FlushScheduler(self._buffer, config, transport, store)

    @property
    def config(self) -> LoggerConfig:
        return self._config

    @property
    def console(self) -> ConsoleSinkPort | None:
        return self._console

    @property
    def scheduler(self) -> FlushScheduler:
        return self._scheduler

    @property
    def pending(self) -> int:
        """Number of entries waiting for the next flush."""
        return len(self._buffer)

    # --- Correlation context ---

    def set_correlation_context(self, context: CorrelationContext) -> None:
        self._context.set(context)

    def clear_correlation_context(self) -> None:
        self._context.clear()

    def generate_correlation_id(self) -> str:
        return self._context.generate()

    # --- Core logging ---

    def log(
        self,
        level: LogLevel,
        message: str,
        metadata: Metadata | None = None,
        error: BaseException | ErrorInfo | None = None,
        performance: PerformanceInfo | None = None,
    ) -> None:
        """Log a message at ``level``. Calls below the configured level are dropped."""
        if level < self._config.level:
            return
        try:
            entry = self._create_entry(level, message, metadata, error, performance)
        except Exception:
            _internal_log.warning("Failed to build log entry", exc_info=True)
            return

        if self._config.enable_console and self._console is not None:
            try:
                self._console.emit(entry)
            except Exception:
                _internal_log.warning("Console sink failed", exc_info=True)

        if self._config.enable_remote or self._config.enable_file:
            self._buffer.append(entry)
            if len(self._buffer) >= self._config.batch_size:
                self._scheduler.notify_full()

    def _create_entry(
        self,
        level: LogLevel,
        message: str,
        metadata: Metadata | None,
        error: BaseException | ErrorInfo | None,
        performance: PerformanceInfo | None,
    ) -> LogEntry:
        context = self._context.get()
        if self._config.sanitize_data:
            metadata = sanitize(metadata)
        if metadata is not None:
            metadata = json_safe(metadata)
        return LogEntry(
            timestamp=time.time(),
            level=level,
            message=message,
            correlation_id=context.correlation_id if context else None,
            user_id=context.user_id if context else None,
            session_id=context.session_id if context else None,
            metadata=metadata,
            error=error_info(error, self._config.include_stack_trace)
            if error is not None
            else None,
            performance=performance,
        )

    def debug(
        self,
        message: str,
        metadata: Metadata | None = None,
        error: BaseException | ErrorInfo | None = None,
    ) -> None:
        self.log(LogLevel.DEBUG, message, metadata, error)

    def info(
        self,
        message: str,
        metadata: Metadata | None = None,
        error: BaseException | ErrorInfo | None = None,
    ) -> None:
        self.log(LogLevel.INFO, message, metadata, error)

    def warn(
        self,
        message: str,
        metadata: Metadata | None = None,
        error: BaseException | ErrorInfo | None = None,
    ) -> None:
        self.log(LogLevel.WARN, message, metadata, error)

    def error(
        self,
        message: str,
        metadata: Metadata | None = None,
        error: BaseException | ErrorInfo | None = None,
    ) -> None:
        self.log(LogLevel.ERROR, message, metadata, error)

    def fatal(
        self,
        message: str,
        metadata: Metadata | None = None,
        error: BaseException | ErrorInfo | None = None,
    ) -> None:
        self.log(LogLevel.FATAL, message, metadata, error)

    # --- Categorized helpers ---

    def performance(
        self, operation: str, duration_ms: float, metadata: Metadata | None = None
    ) -> None:
        """Log an INFO performance entry for ``operation``."""
        self.log(
            LogLevel.INFO,
            f"Performance: {operation}",
            {**(metadata or {}), "operation": operation},
            performance=PerformanceInfo(
                duration=duration_ms, memory_usage=self._memory_usage()
            ),
        )

    def user_action(self, action: str, metadata: Metadata | None = None) -> None:
        self.info(
            f"User Action: {action}",
            {**(metadata or {}), "category": "user_action"},
        )

    def component_lifecycle(
        self, component: str, lifecycle: Lifecycle, metadata: Metadata | None = None
    ) -> None:
        self.debug(
            f"Component {lifecycle}: {component}",
            {
                **(metadata or {}),
                "category": "component_lifecycle",
                "component": component,
                "lifecycle": lifecycle,
            },
        )

    def api_request(
        self,
        method: str,
        url: str,
        status_code: int | None = None,
        duration: float | None = None,
        metadata: Metadata | None = None,
    ) -> None:
        """Log an outbound API call. Non-2xx statuses are logged at WARN."""
        level = LogLevel.INFO
        if status_code is not None and not 200 <= status_code < 300:
            level = LogLevel.WARN
        self.log(
            level,
            f"API {method.upper()} {url}",
            {
                **(metadata or {}),
                "category": "api_request",
                "method": method.upper(),
                "url": url,
                "status_code": status_code,
                "duration": duration,
            },
        )

    def _memory_usage(self) -> int | None:
        if self._signals is None:
            return None
        try:
            return self._signals.memory_usage()
        except Exception:
            _internal_log.debug("Memory usage unavailable", exc_info=True)
            return None

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the flush timer. Must be called from a running event loop."""
        if self._config.enable_remote or self._config.enable_file:
            self._scheduler.start()

    async def flush(self) -> None:
        """Deliver everything buffered so far and wait for the result."""
        await self._scheduler.flush()

    async def wait_idle(self) -> None:
        """Wait for outstanding deliveries, including the final flush."""
        await self._scheduler.wait_idle()

    def destroy(self) -> None:
        """Stop the flush timer and schedule a final flush without waiting."""
        self._scheduler.destroy()
