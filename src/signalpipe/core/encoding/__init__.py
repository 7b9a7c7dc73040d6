"""Encoders for the transport payload, persisted entries and NDJSON output."""

from signalpipe.core.encoding.ndjson import encode_logs
from signalpipe.core.encoding.wire import (
    encode_payload,
    entry_from_dict,
    entry_to_dict,
    json_safe,
    summary_to_dict,
)

__all__ = [
    "encode_logs",
    "encode_payload",
    "entry_from_dict",
    "entry_to_dict",
    "json_safe",
    "summary_to_dict",
]
