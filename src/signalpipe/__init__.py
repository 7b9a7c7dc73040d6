"""In-process logging, metrics and correlation pipeline."""

from signalpipe.adapters.console import ConsoleSink
from signalpipe.adapters.platform import PsutilSignalSource, StaticSignalSource
from signalpipe.adapters.storage import InMemoryLogStore, SQLiteLogStore
from signalpipe.adapters.transport import HttpTransport, InstrumentedTransport
from signalpipe.core.config import (
    LoggerConfig,
    LoggerSettings,
    MetricsConfig,
    merge_config,
)
from signalpipe.core.context import CorrelationContextManager
from signalpipe.core.exceptions import (
    ConfigurationError,
    SignalPipeError,
    TransportError,
)
from signalpipe.core.instrumentation import (
    ComponentMonitor,
    Timing,
    UncaughtErrorHooks,
    monitor_async,
    track_api_call,
    track_timing,
)
from signalpipe.core.logger import Logger
from signalpipe.core.metrics import MetricsCollector
from signalpipe.core.models import (
    CorrelationContext,
    CorrelationUpdate,
    ErrorMetric,
    LogEntry,
    LogLevel,
)
from signalpipe.pipeline import ObservabilityPipeline

__all__ = [
    "ComponentMonitor",
    "ConfigurationError",
    "ConsoleSink",
    "CorrelationContext",
    "CorrelationContextManager",
    "CorrelationUpdate",
    "ErrorMetric",
    "HttpTransport",
    "InMemoryLogStore",
    "InstrumentedTransport",
    "LogEntry",
    "LogLevel",
    "Logger",
    "LoggerConfig",
    "LoggerSettings",
    "MetricsCollector",
    "MetricsConfig",
    "ObservabilityPipeline",
    "PsutilSignalSource",
    "SQLiteLogStore",
    "SignalPipeError",
    "StaticSignalSource",
    "Timing",
    "TransportError",
    "UncaughtErrorHooks",
    "merge_config",
    "monitor_async",
    "track_api_call",
    "track_timing",
]
