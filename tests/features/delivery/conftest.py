"""BDD step definitions for batched delivery and redaction features."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when
from tests.doubles import RecordingTransport

from signalpipe.adapters.storage.in_memory import InMemoryLogStore
from signalpipe.core.config import LoggerConfig
from signalpipe.core.logger import Logger
from signalpipe.core.models import LogLevel


@dataclass
class DeliveryScenarioContext:
    """Shared state between steps in a delivery scenario."""

    transport: RecordingTransport = field(default_factory=RecordingTransport)
    store: InMemoryLogStore = field(default_factory=InMemoryLogStore)
    config: dict[str, Any] = field(default_factory=dict)
    logger: Logger | None = None
    logged: int = 0

    def get_logger(self) -> Logger:
        """Build the logger on first use so Given steps can adjust the config."""
        if self.logger is None:
            config = LoggerConfig(
                enable_console=False,
                enable_remote=True,
                remote_endpoint="https://collector.test/logs",
                flush_interval=60.0,
                **self.config,
            )
            self.logger = Logger(config, transport=self.transport, store=self.store)
        return self.logger


def run_async(coro: Any) -> Any:
    """Run a coroutine in a new event loop (for sync step functions)."""
    return asyncio.run(coro)


def _log_info(ctx: DeliveryScenarioContext, count: int) -> None:
    logger = ctx.get_logger()

    async def log_all() -> None:
        for _ in range(count):
            logger.info(f"entry {ctx.logged}")
            ctx.logged += 1
        await logger.wait_idle()

    run_async(log_all())


@pytest.fixture
def ctx() -> DeliveryScenarioContext:
    """Fresh scenario context for each test."""
    return DeliveryScenarioContext()


# === Given ===
@given(parsers.parse("a logger with batch size {size:d} and {retries:d} max retries"))
def step_logger(ctx: DeliveryScenarioContext, size: int, retries: int) -> None:
    ctx.config.update(batch_size=size, max_retries=retries)


@given(parsers.parse("the minimum level is {level}"))
def step_min_level(ctx: DeliveryScenarioContext, level: str) -> None:
    ctx.config["level"] = LogLevel.parse(level)


@given(
    parsers.re(r"the collector fails the next (?P<times>\d+) attempts?"),
    converters={"times": int},
)
def step_collector_fails(ctx: DeliveryScenarioContext, times: int) -> None:
    ctx.transport.fail_next(times)


@given("the collector is down")
def step_collector_down(ctx: DeliveryScenarioContext) -> None:
    ctx.transport = RecordingTransport(always_fail=True)


# === When ===
@when(
    parsers.re(r"(?P<count>\d+) (more )?INFO entr(y|ies) (is|are) logged"),
    converters={"count": int},
)
def step_log_info(ctx: DeliveryScenarioContext, count: int) -> None:
    _log_info(ctx, count)


@when("the logger flushes")
def step_flush(ctx: DeliveryScenarioContext) -> None:
    run_async(ctx.get_logger().flush())


@when(parsers.parse('an entry with password "{password}" for user "{user}" is logged'))
def step_log_credentials(
    ctx: DeliveryScenarioContext, password: str, user: str
) -> None:
    logger = ctx.get_logger()

    async def log_one() -> None:
        logger.info("login", {"password": password, "user": user})
        await logger.wait_idle()

    run_async(log_one())


# === Then ===
@then(
    parsers.re(r"the collector received (?P<count>\d+) attempts?"),
    converters={"count": int},
)
def step_attempt_count(ctx: DeliveryScenarioContext, count: int) -> None:
    assert ctx.transport.calls == count


@then(parsers.parse("attempt {n:d} carries {count:d} entries"))
def step_attempt_size(ctx: DeliveryScenarioContext, n: int, count: int) -> None:
    assert len(ctx.transport.attempted[n - 1]["logs"]) == count


@then(parsers.parse("attempt {n:d} starts with the entries of attempt {m:d}"))
def step_attempt_prefix(ctx: DeliveryScenarioContext, n: int, m: int) -> None:
    earlier = ctx.transport.attempted[m - 1]["logs"]
    later = ctx.transport.attempted[n - 1]["logs"]
    assert later[: len(earlier)] == earlier


@then("the buffer is empty")
def step_buffer_empty(ctx: DeliveryScenarioContext) -> None:
    assert ctx.get_logger().pending == 0


@then("remote delivery is suspended")
def step_suspended(ctx: DeliveryScenarioContext) -> None:
    assert ctx.get_logger().scheduler.remote_suspended


@then(parsers.parse("the durable store holds {count:d} entries"))
def step_store_count(ctx: DeliveryScenarioContext, count: int) -> None:
    assert len(run_async(ctx.store.read())) == count


@then(parsers.parse('the delivered metadata has {key} "{value}"'))
def step_delivered_metadata(ctx: DeliveryScenarioContext, key: str, value: str) -> None:
    metadata = ctx.transport.payloads[-1]["logs"][-1]["metadata"]
    assert metadata[key] == value
