"""NDJSON encoder for log entries."""

import json
from collections.abc import Iterable

from signalpipe.core.encoding.wire import entry_to_dict
from signalpipe.core.models import LogEntry


def encode_logs(entries: Iterable[LogEntry]) -> str:
    """Encode log entries to newline-delimited JSON.

    Args:
        entries: An iterable of LogEntry objects.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no entries.
    """
    lines = [json.dumps(entry_to_dict(entry), default=str) for entry in entries]

    if not lines:
        return ""

    return "\n".join(lines) + "\n"
