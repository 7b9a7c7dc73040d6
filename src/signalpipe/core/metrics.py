"""Metrics collector with four bounded buffers.

Every ``track_*`` call also forwards an entry to the logger so metrics and
logs stay correlated through the shared correlation context. Metrics are
only read through ``get_metrics_summary``; nothing is transmitted.
"""

import copy
import dataclasses
import logging
import platform
import sys
import time
import traceback
from typing import Any

from signalpipe.core.buffers import RingBuffer
from signalpipe.core.config import MetricsConfig
from signalpipe.core.context import CorrelationContextManager
from signalpipe.core.instrumentation import SystemSampler, Timing, UncaughtErrorHooks
from signalpipe.core.logger import Logger
from signalpipe.core.models import (
    ErrorInfo,
    ErrorMetric,
    Metadata,
    MetricsSummary,
    MetricUnit,
    PerformanceMetric,
    SystemMetric,
    UserMetric,
)
from signalpipe.core.ports import PlatformSignalSource
from signalpipe.core.scheduler import INTERNAL_LOGGER_NAME

_internal_log = logging.getLogger(INTERNAL_LOGGER_NAME)


def user_agent() -> str:
    """Identify the runtime, e.g. ``CPython/3.12.1 (Linux-6.5-x86_64)``."""
    return (
        f"{platform.python_implementation()}/{platform.python_version()} "
        f"({platform.platform(terse=True)})"
    )


class MetricsCollector:
    """Records performance, error, user-action and system metrics.

    Args:
        logger: Logger every metric is forwarded to.
        context: Shared correlation context manager.
        signals: Platform signal source for system snapshots.
        config: Buffer capacities and sampling interval.
    """

    def __init__(
        self,
        logger: Logger,
        context: CorrelationContextManager,
        signals: PlatformSignalSource | None = None,
        config: MetricsConfig | None = None,
    ) -> None:
        self._logger = logger
        self._context = context
        self._signals = signals
        self._config = config or MetricsConfig()
        self._performance: RingBuffer[PerformanceMetric] = RingBuffer(
            self._config.performance_capacity
        )
        self._errors: RingBuffer[ErrorMetric] = RingBuffer(self._config.error_capacity)
        self._user_actions: RingBuffer[UserMetric] = RingBuffer(
            self._config.user_action_capacity
        )
        self._system: RingBuffer[SystemMetric] = RingBuffer(
            self._config.system_capacity
        )
        self._sampler = SystemSampler(
            self.collect_system_metrics, self._config.sample_interval
        )
        self._error_hooks = UncaughtErrorHooks(self.track_exception)
        # last sampled connectivity and visibility, None before the first sample
        self._last_online: bool | None = None
        self._last_visible: bool | None = None

    @property
    def config(self) -> MetricsConfig:
        return self._config

    # --- Tracking ---

    def track_performance(
        self,
        name: str,
        value: float,
        tags: dict[str, Any] | None = None,
        unit: MetricUnit = "ms",
    ) -> PerformanceMetric:
        """Record a performance measurement. Tag values are stringified."""
        context = self._context.get()
        metric = PerformanceMetric(
            name=name,
            value=value,
            unit=unit,
            timestamp=time.time(),
            tags={k: str(v) for k, v in tags.items()} if tags is not None else None,
            correlation_id=context.correlation_id if context else None,
        )
        self._performance.append(metric)
        self._logger.performance(name, value, tags)
        return metric

    def track_error(self, metric: ErrorMetric) -> ErrorMetric:
        """Record an error event, filling missing identity from the context."""
        context = self._context.get()
        if context is not None:
            metric = dataclasses.replace(
                metric,
                correlation_id=metric.correlation_id or context.correlation_id,
                user_id=metric.user_id or context.user_id,
                session_id=metric.session_id or context.session_id,
            )
        self._errors.append(metric)
        self._logger.error(
            "Error tracked",
            {
                "url": metric.url,
                "line": metric.line,
                "column": metric.column,
                "user_agent": metric.user_agent,
            },
            error=ErrorInfo(name="Error", message=metric.message, stack=metric.stack),
        )
        return metric

    def track_exception(
        self, error: BaseException, component_stack: str | None = None
    ) -> ErrorMetric:
        """Record an error event built from a raised exception."""
        frames = traceback.extract_tb(error.__traceback__)
        last = frames[-1] if frames else None
        stack = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        return self.track_error(
            ErrorMetric(
                message=f"{type(error).__name__}: {error}",
                url=last.filename if last else sys.argv[0],
                line=(last.lineno or 0) if last else 0,
                column=(getattr(last, "colno", None) or 0) if last else 0,
                timestamp=time.time(),
                user_agent=user_agent(),
                stack=stack,
                component_stack=component_stack,
            )
        )

    def track_user_action(
        self,
        action: str,
        metadata: Metadata | None = None,
        component: str | None = None,
        duration: float | None = None,
    ) -> UserMetric:
        """Record a user action."""
        context = self._context.get()
        metric = UserMetric(
            action=action,
            timestamp=time.time(),
            component=component,
            duration=duration,
            user_id=context.user_id if context else None,
            session_id=context.session_id if context else None,
            correlation_id=context.correlation_id if context else None,
            metadata=dict(metadata) if metadata is not None else None,
        )
        self._user_actions.append(metric)
        self._logger.user_action(action, metadata)
        return metric

    def track_connection_change(self, online: bool) -> UserMetric:
        """Record a switch between online and offline."""
        self._last_online = online
        return self.track_user_action("connection_change", {"online": online})

    def track_visibility_change(self, visible: bool) -> UserMetric:
        """Record the application moving to or from the foreground."""
        self._last_visible = visible
        return self.track_user_action(
            "page_visibility_change",
            {
                "hidden": not visible,
                "visibility_state": "visible" if visible else "hidden",
            },
        )

    def track_component_performance(
        self, name: str, render_time: float, metadata: Metadata | None = None
    ) -> PerformanceMetric:
        return self.track_performance(
            f"component_render_{name}",
            render_time,
            {"component": name, **(metadata or {})},
        )

    def track_api_performance(
        self, url: str, method: str, duration: float, status_code: int
    ) -> PerformanceMetric:
        """Record an API call's duration and log it as an API request."""
        metric = self.track_performance(
            f"api_{method.lower()}",
            duration,
            {"url": url, "method": method.upper(), "status_code": status_code},
        )
        self._logger.api_request(
            method, url, status_code, duration, {"category": "performance_tracking"}
        )
        return metric

    def collect_system_metrics(self) -> SystemMetric:
        """Sample the platform signal source into a system snapshot.

        A connectivity or visibility value that differs from the previous
        sample is also tracked as a user action.
        """
        signals = self._signals
        metric = SystemMetric(
            online_status=_read(signals, "is_online", True),
            page_visibility=_read(signals, "is_visible", True),
            timestamp=time.time(),
            memory_usage=_read(signals, "memory_usage", None),
            memory_limit=_read(signals, "memory_limit", None),
            connection_type=_read(signals, "connection_type", None),
        )
        self._system.append(metric)
        self._logger.debug(
            "System metrics collected", {"metric": dataclasses.asdict(metric)}
        )
        if self._last_online is not None and metric.online_status != self._last_online:
            self.track_connection_change(metric.online_status)
        if (
            self._last_visible is not None
            and metric.page_visibility != self._last_visible
        ):
            self.track_visibility_change(metric.page_visibility)
        self._last_online = metric.online_status
        self._last_visible = metric.page_visibility
        return metric

    def start_timing(self, name: str) -> Timing:
        """Start an explicit timing whose ``end()`` records ``name``."""
        return Timing(name, self._logger, self).start()

    # --- Reading ---

    def get_metrics_summary(self) -> MetricsSummary:
        """Return deep copies of all four buffers, oldest first."""
        return MetricsSummary(
            performance=copy.deepcopy(self._performance.snapshot()),
            errors=copy.deepcopy(self._errors.snapshot()),
            user_actions=copy.deepcopy(self._user_actions.snapshot()),
            system=copy.deepcopy(self._system.snapshot()),
        )

    def clear_metrics(self) -> None:
        """Empty all four buffers."""
        self._performance.clear()
        self._errors.clear()
        self._user_actions.clear()
        self._system.clear()
        self._logger.info("All metrics cleared")

    # --- Lifecycle ---

    def start(self) -> None:
        """Start periodic system sampling on the running event loop.

        Also routes uncaught exceptions to ``track_exception`` unless
        ``capture_uncaught_errors`` is off.
        """
        self._sampler.start()
        if self._config.capture_uncaught_errors:
            self._error_hooks.install()

    def destroy(self) -> None:
        """Stop periodic system sampling and restore the error hooks."""
        self._sampler.stop()
        self._error_hooks.uninstall()


def _read(signals: PlatformSignalSource | None, name: str, default: Any) -> Any:
    """Read one signal, falling back to ``default`` when unavailable."""
    if signals is None:
        return default
    try:
        return getattr(signals, name)()
    except Exception:
        _internal_log.debug("Platform signal %s unavailable", name, exc_info=True)
        return default
