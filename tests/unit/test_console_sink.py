"""Tests for the stdlib-logging console sink."""

import logging

import pytest

from signalpipe.adapters.console import (
    CONSOLE_LOGGER_NAME,
    ConsoleSink,
    format_entry,
    stdlib_level,
)
from signalpipe.core.models import ErrorInfo, LogEntry, LogLevel, PerformanceInfo
from signalpipe.core.ports import ConsoleSinkPort

pytestmark = [pytest.mark.unit, pytest.mark.tier(1)]


class TestFormatting:
    def test_headline_with_correlation(self) -> None:
        entry = LogEntry(
            timestamp=0.0,
            level=LogLevel.WARN,
            message="slow response",
            correlation_id="corr_1",
        )

        assert format_entry(entry) == (
            "[WARN] [corr_1] 1970-01-01T00:00:00+00:00 - slow response"
        )

    def test_headline_without_correlation(self) -> None:
        entry = LogEntry(timestamp=0.0, level=LogLevel.INFO, message="ready")

        assert format_entry(entry) == "[INFO] 1970-01-01T00:00:00+00:00 - ready"

    @pytest.mark.parametrize(
        ("level", "expected"),
        [
            (LogLevel.DEBUG, logging.DEBUG),
            (LogLevel.INFO, logging.INFO),
            (LogLevel.WARN, logging.WARNING),
            (LogLevel.ERROR, logging.ERROR),
            (LogLevel.FATAL, logging.CRITICAL),
        ],
    )
    def test_level_mapping(self, level: LogLevel, expected: int) -> None:
        assert stdlib_level(level) == expected


class TestConsoleSink:
    """Tests for ConsoleSink.emit()."""

    def test_implements_console_sink_port(self) -> None:
        assert isinstance(ConsoleSink(), ConsoleSinkPort)

    def test_emits_at_mapped_level(self, caplog: pytest.LogCaptureFixture) -> None:
        entry = LogEntry(timestamp=0.0, level=LogLevel.FATAL, message="out of memory")

        with caplog.at_level(logging.DEBUG, logger=CONSOLE_LOGGER_NAME):
            ConsoleSink().emit(entry)

        record = caplog.records[0]
        assert record.name == CONSOLE_LOGGER_NAME
        assert record.levelno == logging.CRITICAL
        assert "out of memory" in record.getMessage()

    def test_emits_detail_lines(self, caplog: pytest.LogCaptureFixture) -> None:
        entry = LogEntry(
            timestamp=0.0,
            level=LogLevel.ERROR,
            message="checkout failed",
            metadata={"order_id": 7},
            error=ErrorInfo("ValueError", "bad total", stack="Traceback ..."),
            performance=PerformanceInfo(duration=12.5),
        )

        with caplog.at_level(logging.DEBUG, logger=CONSOLE_LOGGER_NAME):
            ConsoleSink().emit(entry)

        messages = [r.getMessage() for r in caplog.records]
        assert messages[1] == "Metadata: {'order_id': 7}"
        assert messages[2] == "Error details: ValueError: bad total"
        assert messages[3] == "Traceback ..."
        assert messages[4] == "Performance: duration=12.5 memory_usage=None"

    def test_uses_given_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        target = logging.getLogger("app.observability")

        with caplog.at_level(logging.INFO, logger="app.observability"):
            ConsoleSink(target).emit(
                LogEntry(timestamp=0.0, level=LogLevel.INFO, message="routed")
            )

        assert caplog.records[0].name == "app.observability"
