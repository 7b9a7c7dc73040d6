"""Tests for correlation context management."""

import re

import pytest

from signalpipe.core.context import CorrelationContextManager, generate_id
from signalpipe.core.models import CorrelationContext, CorrelationUpdate

pytestmark = [pytest.mark.core, pytest.mark.tier(0)]

ID_PATTERN = re.compile(r"^corr_\d{13}_[0-9a-z]{9}$")


class TestGenerateId:
    def test_format(self) -> None:
        """Ids look like corr_<epoch ms>_<9 base36 chars>."""
        assert ID_PATTERN.match(generate_id())

    def test_prefix(self) -> None:
        assert generate_id("session").startswith("session_")

    def test_ids_are_unique(self) -> None:
        assert len({generate_id() for _ in range(200)}) == 200


class TestCorrelationContextManager:
    """Tests for CorrelationContextManager."""

    def test_starts_without_context(self) -> None:
        assert CorrelationContextManager().get() is None

    def test_set_replaces_context(self) -> None:
        manager = CorrelationContextManager()
        context = CorrelationContext(correlation_id="corr_a", user_id="u1")

        manager.set(context)

        assert manager.get() is context

    def test_update_merges_keyword_fields(self) -> None:
        manager = CorrelationContextManager(
            CorrelationContext(correlation_id="corr_a", session_id="s1")
        )

        updated = manager.update(user_id="u7")

        assert updated == CorrelationContext(
            correlation_id="corr_a", session_id="s1", user_id="u7"
        )
        assert manager.get() == updated

    def test_update_accepts_partial_object(self) -> None:
        manager = CorrelationContextManager(CorrelationContext(correlation_id="corr_a"))

        manager.update(CorrelationUpdate(trace_id="trace_1"))

        context = manager.get()
        assert context is not None
        assert context.trace_id == "trace_1"

    def test_update_without_context_creates_one(self) -> None:
        """A fresh correlation id is generated when nothing is active."""
        manager = CorrelationContextManager()

        context = manager.update(user_id="u1")

        assert ID_PATTERN.match(context.correlation_id)
        assert context.user_id == "u1"

    def test_clear(self) -> None:
        manager = CorrelationContextManager(CorrelationContext(correlation_id="corr_a"))

        manager.clear()

        assert manager.get() is None

    def test_new_session_sets_all_ids(self) -> None:
        manager = CorrelationContextManager()

        context = manager.new_session(user_id="u1")

        assert manager.get() is context
        assert context.user_id == "u1"
        assert context.session_id is not None
        assert context.session_id.startswith("session_")
        assert context.trace_id is not None
        assert context.trace_id.startswith("trace_")
        assert ID_PATTERN.match(context.correlation_id)

    def test_new_session_continues_given_session(self) -> None:
        context = CorrelationContextManager().new_session(session_id="session_kept")

        assert context.session_id == "session_kept"
