"""Configuration for the logger, flush scheduler and metrics collector.

Both configs are frozen dataclasses validated at construction. Environment
presets and ``SIGNALPIPE_*`` variables provide defaults; ``merge_config``
applies explicit overrides where a non-None override always wins.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from signalpipe.core.exceptions import ConfigurationError
from signalpipe.core.models import LogLevel

ENV_PREFIX = "SIGNALPIPE_"

# Preset values per deployment environment, applied before env overrides.
_PRESETS: dict[str, dict[str, Any]] = {
    "production": {
        "level": LogLevel.INFO,
        "enable_console": True,
        "enable_remote": True,
        "enable_file": False,
        "include_stack_trace": False,
    },
    "development": {
        "level": LogLevel.DEBUG,
        "enable_console": True,
        "enable_remote": False,
        "enable_file": True,
        "include_stack_trace": True,
    },
    "test": {
        "level": LogLevel.DEBUG,
        "enable_console": False,
        "enable_remote": False,
        "enable_file": False,
        "include_stack_trace": True,
    },
}

@dataclass(frozen=True)
class LoggerConfig:
    """Logger and flush scheduler configuration.

    Attributes:
        level: Minimum level emitted to any sink.
        enable_console: Render entries through the console sink.
        enable_remote: Deliver batches to ``remote_endpoint``.
        enable_file: Mirror every flushed batch into the durable store.
        remote_endpoint: Collector URL, required when remote is enabled.
        max_retries: Consecutive failed deliveries before remote is suspended.
        batch_size: Buffer length that triggers an immediate flush.
        flush_interval: Seconds between timer-driven flushes.
        include_stack_trace: Attach formatted tracebacks to error entries.
        sanitize_data: Redact sensitive metadata keys.
        source: Pipeline identifier sent with every batch.
        version: Application version sent with every batch.
        environment: Environment tag sent with every batch.
        storage_path: SQLite path of the durable store.
    """

    level: LogLevel = LogLevel.DEBUG
    enable_console: bool = True
    enable_remote: bool = False
    enable_file: bool = False
    remote_endpoint: str | None = None
    max_retries: int = 3
    batch_size: int = 10
    flush_interval: float = 5.0
    include_stack_trace: bool = True
    sanitize_data: bool = True
    source: str = "signalpipe"
    version: str = "1.0.0"
    environment: str = "development"
    storage_path: str = ":memory:"

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "level", LogLevel.parse(self.level))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if self.enable_remote and not self.remote_endpoint:
            raise ConfigurationError(
                "remote_endpoint is required when enable_remote is set"
            )
        if self.batch_size < 1:
            raise ConfigurationError(
                f"batch_size must be positive, got {self.batch_size}"
            )
        if self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must not be negative, got {self.max_retries}"
            )
        if self.flush_interval <= 0:
            raise ConfigurationError(
                f"flush_interval must be positive, got {self.flush_interval}"
            )

    @classmethod
    def for_environment(cls, environment: str, **overrides: Any) -> "LoggerConfig":
        """Build a config from the preset for ``environment``.

        Args:
            environment: One of "production", "development" or "test".
            **overrides: Field values applied over the preset.

        Raises:
            ConfigurationError: If the environment is unknown or the result
                is invalid.
        """
        try:
            preset = _PRESETS[environment]
        except KeyError:
            raise ConfigurationError(f"Unknown environment: {environment!r}") from None
        return cls(**{**preset, "environment": environment, **overrides})

    @classmethod
    def from_env(cls) -> "LoggerConfig":
        """Build a config from ``SIGNALPIPE_*`` environment variables.

        ``SIGNALPIPE_ENVIRONMENT`` selects the preset (default "development");
        every other variable overrides the matching field, e.g.
        ``SIGNALPIPE_BATCH_SIZE=20`` or ``SIGNALPIPE_ENABLE_REMOTE=true``.

        Raises:
            ConfigurationError: If a variable cannot be parsed or the result
                is invalid.
        """
        try:
            settings = LoggerSettings()
        except ValidationError as e:
            fields = dict.fromkeys(str(error["loc"][0]).upper() for error in e.errors())
            names = ", ".join(f"{ENV_PREFIX}{name}" for name in fields)
            raise ConfigurationError(f"Invalid value for {names}") from e
        return settings.to_config()


class LoggerSettings(BaseSettings):
    """LoggerConfig fields read from ``SIGNALPIPE_*`` environment variables.

    Unset fields stay None and fall back to the preset named by
    ``environment``.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    level: str | None = None
    enable_console: bool | None = None
    enable_remote: bool | None = None
    enable_file: bool | None = None
    remote_endpoint: str | None = None
    max_retries: int | None = None
    batch_size: int | None = None
    flush_interval: float | None = None
    include_stack_trace: bool | None = None
    sanitize_data: bool | None = None
    source: str | None = None
    version: str | None = None
    storage_path: str | None = None

    def to_config(self) -> LoggerConfig:
        """Apply the variables that are set over the environment preset."""
        overrides = self.model_dump(exclude={"environment"}, exclude_none=True)
        return LoggerConfig.for_environment(self.environment, **overrides)


_POSITIVE_METRICS_FIELDS = (
    "performance_capacity",
    "error_capacity",
    "user_action_capacity",
    "system_capacity",
    "sample_interval",
)


@dataclass(frozen=True)
class MetricsConfig:
    """Metrics collector configuration.

    Attributes:
        performance_capacity: Max performance metrics retained.
        error_capacity: Max error metrics retained.
        user_action_capacity: Max user-action metrics retained.
        system_capacity: Max system snapshots retained.
        sample_interval: Seconds between system snapshots.
        capture_uncaught_errors: Track uncaught exceptions while started.
    """

    performance_capacity: int = 1000
    error_capacity: int = 500
    user_action_capacity: int = 1000
    system_capacity: int = 100
    sample_interval: float = 30.0
    capture_uncaught_errors: bool = True

    def __post_init__(self) -> None:
        for name in _POSITIVE_METRICS_FIELDS:
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")


def merge_config(base: LoggerConfig, **overrides: Any) -> LoggerConfig:
    """Return a copy of ``base`` with the non-None ``overrides`` applied.

    Raises:
        ConfigurationError: If an override names an unknown field or the
            merged config is invalid.
    """
    known = {f.name for f in dataclasses.fields(base)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigurationError(f"Unknown config fields: {sorted(unknown)}")
    changes = {k: v for k, v in overrides.items() if v is not None}
    return dataclasses.replace(base, **changes)

