"""Correlation context management.

One context is live per session. The manager is shared by reference with
the logger and metrics collector, which read it on every call; only the
manager's own methods replace it.
"""

import secrets
import string
import time

from signalpipe.core.models import CorrelationContext, CorrelationUpdate

_BASE36 = string.digits + string.ascii_lowercase


def generate_id(prefix: str = "corr") -> str:
    """Generate a ``<prefix>_<epoch ms>_<9 base36 chars>`` identifier."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


class CorrelationContextManager:
    """Holds the current correlation context for the session."""

    def __init__(self, context: CorrelationContext | None = None) -> None:
        self._context = context

    def generate(self) -> str:
        """Generate a new correlation id."""
        return generate_id("corr")

    def get(self) -> CorrelationContext | None:
        """Return the current context, or None when cleared."""
        return self._context

    def set(self, context: CorrelationContext) -> None:
        """Replace the current context wholesale."""
        self._context = context

    def update(
        self, partial: CorrelationUpdate | None = None, **fields: str | None
    ) -> CorrelationContext:
        """Merge fields into the current context and return the result.

        Fields may be given as a CorrelationUpdate or as keyword arguments.
        With no current context, a fresh one with a generated correlation id
        is created first.
        """
        if partial is None:
            partial = CorrelationUpdate(**fields)
        base = self._context or CorrelationContext(correlation_id=self.generate())
        self._context = base.merged(partial)
        return self._context

    def clear(self) -> None:
        """Drop the current context."""
        self._context = None

    def new_session(
        self, user_id: str | None = None, session_id: str | None = None
    ) -> CorrelationContext:
        """Establish and set the session-start context.

        Args:
            user_id: Authenticated user, if known.
            session_id: Existing session id to continue; generated if None.
        """
        context = CorrelationContext(
            correlation_id=self.generate(),
            session_id=session_id or generate_id("session"),
            user_id=user_id,
            trace_id=generate_id("trace"),
        )
        self._context = context
        return context
