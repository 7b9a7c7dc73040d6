"""Redaction of sensitive metadata values."""

from signalpipe.core.models import Metadata

REDACTED = "[REDACTED]"

# Lower-case fragments; a key matches when its lower-cased form contains one.
SENSITIVE_FRAGMENTS = ("password", "token", "apikey", "secret", "creditcard", "ssn")


def is_sensitive_key(key: object) -> bool:
    """Return True if ``key`` contains a sensitive fragment, ignoring case."""
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in SENSITIVE_FRAGMENTS)


def sanitize(metadata: Metadata | None) -> Metadata | None:
    """Return a copy of ``metadata`` with sensitive values redacted.

    Only top-level keys are inspected. None passes through as None.
    """
    if metadata is None:
        return None
    return {
        key: REDACTED if is_sensitive_key(key) else value
        for key, value in metadata.items()
    }
