"""Shared test fixtures for all test modules."""

from pathlib import Path

import httpx
import pytest
from tests.doubles import CountingStore, RecordingConsole, RecordingTransport

from signalpipe.adapters.platform import StaticSignalSource
from signalpipe.core.config import LoggerConfig
from signalpipe.core.context import CorrelationContextManager
from signalpipe.core.logger import Logger
from signalpipe.core.metrics import MetricsCollector


@pytest.fixture
def log_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for log store tests."""
    return str(tmp_path / "logs.db")


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def console() -> RecordingConsole:
    return RecordingConsole()


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def signals() -> StaticSignalSource:
    return StaticSignalSource(
        memory=50_000_000, limit=2_000_000_000, connection="wifi"
    )


@pytest.fixture
def remote_config() -> LoggerConfig:
    """Remote delivery on, console off, batches of 3."""
    return LoggerConfig(
        enable_console=False,
        enable_remote=True,
        remote_endpoint="https://collector.test/logs",
        batch_size=3,
        flush_interval=60.0,
    )


@pytest.fixture
def context_manager() -> CorrelationContextManager:
    return CorrelationContextManager()


@pytest.fixture
def logger(
    remote_config: LoggerConfig,
    context_manager: CorrelationContextManager,
    transport: RecordingTransport,
    store: CountingStore,
    console: RecordingConsole,
    signals: StaticSignalSource,
) -> Logger:
    """Logger wired to recording doubles. Timers are not started."""
    return Logger(
        remote_config,
        context_manager,
        transport=transport,
        store=store,
        console=console,
        signals=signals,
    )


@pytest.fixture
def metrics(
    logger: Logger,
    context_manager: CorrelationContextManager,
    signals: StaticSignalSource,
) -> MetricsCollector:
    return MetricsCollector(logger, context_manager, signals)


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
