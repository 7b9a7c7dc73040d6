"""JSON wire format for log entries and metric summaries.

Entries are encoded with camelCase keys, an ISO 8601 UTC timestamp and the
level name. Absent optional fields are omitted.
"""

import dataclasses
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from signalpipe.core.models import (
    ErrorInfo,
    LogEntry,
    LogLevel,
    MetricsSummary,
    PerformanceInfo,
)

_JSON_SCALARS = (str, int, float, bool, type(None))


def json_safe(value: Any) -> Any:
    """Return a copy of ``value`` that ``json.dumps`` always accepts.

    Mapping keys become strings, lists, tuples and sets become lists, and any
    other leaf is replaced by its ``str()``.
    """
    if isinstance(value, _JSON_SCALARS):
        return value
    if isinstance(value, Mapping):
        return {
            key if isinstance(key, str) else str(key): json_safe(item)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple | set | frozenset):
        return [json_safe(item) for item in value]
    return str(value)


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=UTC).isoformat()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def entry_to_dict(entry: LogEntry) -> dict[str, Any]:
    """Convert a LogEntry to its JSON-serializable wire form."""
    obj: dict[str, Any] = {
        "timestamp": _iso(entry.timestamp),
        "level": entry.level.name,
        "message": entry.message,
    }
    for name in ("correlation_id", "user_id", "session_id", "metadata"):
        value = getattr(entry, name)
        if value is not None:
            obj[_camel(name)] = value
    if entry.error is not None:
        error: dict[str, Any] = {
            "name": entry.error.name,
            "message": entry.error.message,
        }
        if entry.error.stack is not None:
            error["stack"] = entry.error.stack
        obj["error"] = error
    if entry.performance is not None:
        obj["performance"] = {
            _camel(k): v
            for k, v in dataclasses.asdict(entry.performance).items()
            if v is not None
        }
    return obj


def entry_from_dict(obj: dict[str, Any]) -> LogEntry:
    """Rebuild a LogEntry from its wire form.

    Raises:
        KeyError: If a required key is missing.
        ValueError: If the timestamp or level cannot be parsed.
    """
    error = obj.get("error")
    performance = obj.get("performance")
    return LogEntry(
        timestamp=datetime.fromisoformat(obj["timestamp"]).timestamp(),
        level=LogLevel.parse(obj["level"]),
        message=obj["message"],
        correlation_id=obj.get("correlationId"),
        user_id=obj.get("userId"),
        session_id=obj.get("sessionId"),
        metadata=obj.get("metadata"),
        error=ErrorInfo(error["name"], error["message"], error.get("stack"))
        if error is not None
        else None,
        performance=PerformanceInfo(
            duration=performance.get("duration"),
            memory_usage=performance.get("memoryUsage"),
        )
        if performance is not None
        else None,
    )


def encode_payload(
    entries: Sequence[LogEntry], source: str, version: str, environment: str
) -> dict[str, Any]:
    """Build the transport payload for one batch."""
    return {
        "logs": [entry_to_dict(e) for e in entries],
        "source": source,
        "version": version,
        "environment": environment,
    }


def summary_to_dict(summary: MetricsSummary) -> dict[str, Any]:
    """Convert a MetricsSummary to camelCase JSON-serializable form."""
    return {
        "performance": [_camel_record(m) for m in summary.performance],
        "errors": [_camel_record(m) for m in summary.errors],
        "userActions": [_camel_record(m) for m in summary.user_actions],
        "system": [_camel_record(m) for m in summary.system],
    }


def _camel_record(record: Any) -> dict[str, Any]:
    return {
        _camel(k): v for k, v in dataclasses.asdict(record).items() if v is not None
    }
