"""Instrumentation hooks converting lifecycle and timing events into signals.

Hooks hold no state beyond per-instance counters and timestamps. Wrapped
operations always see their own result or exception: failures are recorded
and then re-raised.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import sys
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from types import TracebackType
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

from signalpipe.core.context import generate_id
from signalpipe.core.logger import Logger
from signalpipe.core.models import Metadata
from signalpipe.core.scheduler import INTERNAL_LOGGER_NAME

if TYPE_CHECKING:
    from signalpipe.core.metrics import MetricsCollector

P = ParamSpec("P")
T = TypeVar("T")

Clock = Callable[[], float]

_internal_log = logging.getLogger(INTERNAL_LOGGER_NAME)


def _elapsed_ms(clock: Clock, start: float) -> float:
    return (clock() - start) * 1000


class ComponentMonitor:
    """Times a component's mount, updates and unmount.

    Can be used as a context manager: entering mounts, exiting unmounts.

    Example:
        ```python
        with ComponentMonitor("TransactionFeed", logger, metrics) as monitor:
            render()
            monitor.update()
        ```
    """

    def __init__(
        self,
        name: str,
        logger: Logger,
        metrics: MetricsCollector,
        metadata: Metadata | None = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.name = name
        self._logger = logger
        self._metrics = metrics
        self._metadata = dict(metadata or {})
        self._clock = clock
        self._created = clock()
        self._last_render = self._created
        self._mounted_at: float | None = None
        self.render_count = 0

    def mount(self) -> float:
        """Record the mount, which counts as the first render.

        Returns the time since construction in ms.
        """
        now = self._clock()
        duration = (now - self._created) * 1000
        self._mounted_at = now
        self._last_render = now
        self.render_count = 1
        self._metrics.track_component_performance(
            f"{self.name}_mount", duration, self._metadata
        )
        self._logger.component_lifecycle(
            self.name,
            "mount",
            {
                "mount_duration": duration,
                "render_count": self.render_count,
                **self._metadata,
            },
        )
        return duration

    def update(self) -> float:
        """Record a render. Returns the time since the previous render in ms."""
        now = self._clock()
        self.render_count += 1
        render_time = (now - self._last_render) * 1000
        self._last_render = now
        self._metrics.track_component_performance(
            self.name,
            render_time,
            {"render_count": self.render_count, **self._metadata},
        )
        self._logger.component_lifecycle(
            self.name,
            "update",
            {
                "render_count": self.render_count,
                "render_time": render_time,
                **self._metadata,
            },
        )
        return render_time

    def unmount(self) -> float:
        """Record the unmount. Returns the component's lifespan in ms."""
        start = self._mounted_at if self._mounted_at is not None else self._created
        lifespan = _elapsed_ms(self._clock, start)
        self._metrics.track_component_performance(
            f"{self.name}_unmount", lifespan, self._metadata
        )
        self._logger.component_lifecycle(
            self.name,
            "unmount",
            {
                "total_renders": self.render_count,
                "lifespan": lifespan,
                **self._metadata,
            },
        )
        return lifespan

    def __enter__(self) -> ComponentMonitor:
        self.mount()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.unmount()


def monitor_async(
    name: str,
    logger: Logger,
    metrics: MetricsCollector,
    clock: Clock = time.perf_counter,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator timing every call of an async operation.

    Logs start, success or failure with an ``<name>_<n>`` operation id and
    forwards the duration to ``track_performance``. Failures are re-raised.
    """

    def decorator(operation: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        count = 0

        @functools.wraps(operation)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            nonlocal count
            count += 1
            n = count
            operation_id = f"{name}_{n}"
            logger.debug(
                f"Starting async operation: {name}",
                {"operation_id": operation_id, "operation_count": n},
            )
            start = clock()
            try:
                result = await operation(*args, **kwargs)
            except Exception as e:
                duration = _elapsed_ms(clock, start)
                metrics.track_performance(
                    name,
                    duration,
                    {
                        "operation_id": operation_id,
                        "success": "false",
                        "error": str(e),
                        "operation_count": n,
                    },
                )
                logger.error(
                    f"Async operation failed: {name}",
                    {
                        "operation_id": operation_id,
                        "duration": duration,
                        "success": False,
                    },
                    error=e,
                )
                raise
            duration = _elapsed_ms(clock, start)
            metrics.track_performance(
                name,
                duration,
                {"operation_id": operation_id, "success": "true", "operation_count": n},
            )
            logger.info(
                f"Async operation completed: {name}",
                {"operation_id": operation_id, "duration": duration, "success": True},
            )
            return result

        return wrapper

    return decorator


@dataclass(frozen=True)
class TimingResult:
    """Outcome of a finished Timing.

    ``duration`` is in ms; ``start`` and ``end`` are raw clock readings.
    """

    operation_id: str
    duration: float
    start: float
    end: float


class Timing:
    """Explicit start/end timing of a synchronous operation.

    Usable as a context manager, which records ``success`` and re-raises
    failures, or through ``start()`` and ``end()`` when the span does not
    fit one block.

    Example:
        ```python
        with Timing("rebuild_index", logger, metrics):
            rebuild_index()

        timing = Timing("checkout", logger, metrics).start()
        ...
        result = timing.end({"items": 3})
        ```
    """

    def __init__(
        self,
        name: str,
        logger: Logger,
        metrics: MetricsCollector,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.name = name
        self.operation_id = generate_id(name)
        self._logger = logger
        self._metrics = metrics
        self._clock = clock
        self._start: float | None = None
        self.result: TimingResult | None = None

    def start(self) -> Timing:
        self._start = self._clock()
        self._logger.debug(
            f"Performance tracking started: {self.name}",
            {"operation_id": self.operation_id},
        )
        return self

    def end(self, metadata: Metadata | None = None) -> TimingResult:
        """Stop the clock and record the duration.

        Later calls return the first result.

        Raises:
            RuntimeError: If the timing was never started.
        """
        if self.result is not None:
            return self.result
        if self._start is None:
            raise RuntimeError(f"Timing {self.name!r} was ended before it started")
        now = self._clock()
        duration = (now - self._start) * 1000
        self._metrics.track_performance(
            self.name,
            duration,
            {"operation_id": self.operation_id, **(metadata or {})},
        )
        self.result = TimingResult(self.operation_id, duration, self._start, now)
        return self.result

    def __enter__(self) -> Timing:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            self.end({"success": True})
        else:
            self.end({"success": False, "error": str(exc)})


def track_timing(
    name: str,
    operation: Callable[[], T],
    metadata: Metadata | None = None,
    *,
    logger: Logger,
    metrics: MetricsCollector,
    clock: Clock = time.perf_counter,
) -> T:
    """Run a synchronous operation under a Timing and return its result."""
    timing = Timing(name, logger, metrics, clock).start()
    try:
        result = operation()
    except Exception as e:
        timing.end({"success": False, "error": str(e), **(metadata or {})})
        raise
    timing.end({"success": True, **(metadata or {})})
    return result


def _status_from_error(error: Exception) -> int:
    """Status carried by an HTTP error's response, 500 otherwise."""
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else 500


async def track_api_call(
    call: Callable[[], Awaitable[T]],
    url: str,
    method: str = "GET",
    metadata: Metadata | None = None,
    *,
    logger: Logger,
    metrics: MetricsCollector,
    clock: Clock = time.perf_counter,
) -> T:
    """Await an outbound API call and record its duration and status.

    The status comes from the result's ``status_code`` (200 when absent) or
    from the error's ``response.status_code`` (500 when absent). Non-2xx
    outcomes are logged at WARN. Errors are re-raised.
    """
    logger.debug(
        f"API call started: {method.upper()} {url}",
        {
            "request_id": generate_id("req"),
            "method": method.upper(),
            "url": url,
            **(metadata or {}),
        },
    )
    start = clock()
    try:
        result = await call()
    except Exception as e:
        metrics.track_api_performance(
            url, method, _elapsed_ms(clock, start), _status_from_error(e)
        )
        raise
    status = getattr(result, "status_code", None)
    metrics.track_api_performance(
        url,
        method,
        _elapsed_ms(clock, start),
        status if isinstance(status, int) else 200,
    )
    return result


class UncaughtErrorHooks:
    """Routes uncaught exceptions to ``track``.

    ``install`` wraps ``sys.excepthook`` and, inside a running loop, the
    loop's exception handler. Both chain to what was there before and are
    restored by ``uninstall``.
    """

    def __init__(self, track: Callable[[BaseException], Any]) -> None:
        self._track = track
        self._installed = False
        self._previous_excepthook: Callable[..., Any] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_loop_handler: Callable[..., Any] | None = None

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        if self._installed:
            return
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        if self._loop is not None:
            self._previous_loop_handler = self._loop.get_exception_handler()
            self._loop.set_exception_handler(self._loop_handler)
        self._installed = True

    def uninstall(self) -> None:
        if not self._installed:
            return
        # leave hooks installed after ours by someone else in place
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__
        if (
            self._loop is not None
            and self._loop.get_exception_handler() == self._loop_handler
        ):
            self._loop.set_exception_handler(self._previous_loop_handler)
        self._loop = None
        self._previous_excepthook = None
        self._previous_loop_handler = None
        self._installed = False

    def _record(self, error: BaseException) -> None:
        try:
            self._track(error)
        except Exception:
            _internal_log.warning("Failed to record uncaught error", exc_info=True)

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            self._record(exc)
        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc, tb)

    def _loop_handler(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        error = context.get("exception")
        if isinstance(error, BaseException):
            self._record(error)
        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)


class SystemSampler:
    """Calls ``collect`` every ``interval`` seconds on the event loop."""

    def __init__(self, collect: Callable[[], Any], interval: float) -> None:
        self._collect = collect
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._collect()
            except Exception:
                _internal_log.warning("System sampling failed", exc_info=True)
