"""Core domain models for log entries, correlation context and metrics."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Literal

Metadata = dict[str, Any]
MetricUnit = Literal["ms", "bytes", "count", "percentage"]

_LEVEL_ALIASES = {"WARNING": "WARN", "CRITICAL": "FATAL"}


class LogLevel(IntEnum):
    """Ordered log severity. Calls below the configured level are dropped."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4

    @classmethod
    def parse(cls, value: "str | int | LogLevel") -> "LogLevel":
        """Parse a level from its name (case-insensitive) or numeric value.

        Accepts the stdlib spellings WARNING and CRITICAL as aliases.

        Raises:
            ValueError: If the value does not name a level.
        """
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, int):
            return cls(value)
        if not isinstance(value, str):
            raise ValueError(f"Unknown log level: {value!r}")
        name = value.strip().upper()
        name = _LEVEL_ALIASES.get(name, name)
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown log level: {value!r}") from None


@dataclass(frozen=True)
class ErrorInfo:
    """Error details attached to a log entry.

    Attributes:
        name: Exception class name.
        message: Exception message.
        stack: Formatted traceback, omitted when stack traces are disabled.
    """

    name: str
    message: str
    stack: str | None = None


@dataclass(frozen=True)
class PerformanceInfo:
    """Timing details attached to a log entry."""

    duration: float | None = None
    memory_usage: int | None = None


@dataclass(frozen=True)
class LogEntry:
    """A structured log entry.

    Attributes:
        timestamp: Unix timestamp in seconds.
        level: Severity of the entry.
        message: The log message.
        correlation_id: Correlation id of the active context, if any.
        user_id: User id of the active context, if any.
        session_id: Session id of the active context, if any.
        metadata: Additional structured fields (sanitized when enabled).
        error: Error details, if the call carried an exception.
        performance: Timing details for performance entries.
    """

    timestamp: float
    level: LogLevel
    message: str
    correlation_id: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    metadata: Metadata | None = None
    error: ErrorInfo | None = None
    performance: PerformanceInfo | None = None


@dataclass(frozen=True)
class CorrelationContext:
    """Identity bundle attached to every emitted signal.

    Attributes:
        correlation_id: Always present.
        session_id: Session identifier, if established.
        user_id: Authenticated user, if known.
        trace_id: Trace identifier, if established.
        request_id: Identifier of the request being served, if any.
    """

    correlation_id: str
    session_id: str | None = None
    user_id: str | None = None
    trace_id: str | None = None
    request_id: str | None = None

    def merged(self, partial: "CorrelationUpdate") -> "CorrelationContext":
        """Return a new context with the non-None fields of ``partial`` applied."""
        return CorrelationContext(
            correlation_id=partial.correlation_id or self.correlation_id,
            session_id=_pick(partial.session_id, self.session_id),
            user_id=_pick(partial.user_id, self.user_id),
            trace_id=_pick(partial.trace_id, self.trace_id),
            request_id=_pick(partial.request_id, self.request_id),
        )


@dataclass(frozen=True)
class CorrelationUpdate:
    """Partial correlation context. ``None`` means "keep the current value"."""

    correlation_id: str | None = None
    session_id: str | None = None
    user_id: str | None = None
    trace_id: str | None = None
    request_id: str | None = None


def _pick(new: str | None, old: str | None) -> str | None:
    return new if new is not None else old


@dataclass(frozen=True)
class PerformanceMetric:
    """A single timing or size measurement."""

    name: str
    value: float
    unit: MetricUnit
    timestamp: float
    tags: dict[str, str] | None = None
    correlation_id: str | None = None


@dataclass(frozen=True)
class ErrorMetric:
    """An error event.

    Attributes:
        message: Error message.
        url: Source location the error was raised from.
        line: Line number in ``url`` (0 when unknown).
        column: Column number in ``url`` (0 when unknown).
        timestamp: Unix timestamp in seconds.
        user_agent: Runtime identification string.
        stack: Formatted traceback, if available.
        component_stack: Component path the error surfaced through, if any.
    """

    message: str
    url: str
    line: int
    column: int
    timestamp: float
    user_agent: str
    stack: str | None = None
    correlation_id: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    component_stack: str | None = None


@dataclass(frozen=True)
class UserMetric:
    """A user-action event."""

    action: str
    timestamp: float
    component: str | None = None
    duration: float | None = None
    user_id: str | None = None
    session_id: str | None = None
    correlation_id: str | None = None
    metadata: Metadata | None = None


@dataclass(frozen=True)
class SystemMetric:
    """A periodic snapshot of host resources and connectivity."""

    online_status: bool
    page_visibility: bool
    timestamp: float
    memory_usage: int | None = None
    memory_limit: int | None = None
    connection_type: str | None = None


@dataclass
class MetricsSummary:
    """Snapshot of the four metric buffers, oldest first."""

    performance: list[PerformanceMetric] = field(default_factory=list)
    errors: list[ErrorMetric] = field(default_factory=list)
    user_actions: list[UserMetric] = field(default_factory=list)
    system: list[SystemMetric] = field(default_factory=list)
