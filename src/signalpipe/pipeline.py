"""Composition root wiring the context, logger, scheduler and collector."""

from types import TracebackType

from signalpipe.adapters.console import ConsoleSink
from signalpipe.adapters.storage.sqlite import SQLiteLogStore
from signalpipe.adapters.transport import HttpTransport
from signalpipe.core.config import LoggerConfig, MetricsConfig
from signalpipe.core.context import CorrelationContextManager
from signalpipe.core.logger import Logger
from signalpipe.core.metrics import MetricsCollector
from signalpipe.core.models import CorrelationContext, CorrelationUpdate
from signalpipe.core.ports import (
    ConsoleSinkPort,
    LogStorePort,
    PlatformSignalSource,
    TransportPort,
)


class ObservabilityPipeline:
    """Owns one logger, metrics collector and correlation context.

    Nothing is global: every collaborator is built here and shared by
    reference. ``start`` must be called from a running event loop.

    Example:
        ```python
        config = LoggerConfig.for_environment(
            "production", remote_endpoint="https://logs.example.com/ingest"
        )
        async with ObservabilityPipeline(config) as pipeline:
            pipeline.start(user_id="u-42")
            pipeline.logger.info("Checkout opened")
            pipeline.metrics.track_user_action("checkout_click")
        ```
    """

    def __init__(
        self,
        logger_config: LoggerConfig,
        metrics_config: MetricsConfig | None = None,
        *,
        transport: TransportPort | None = None,
        store: LogStorePort | None = None,
        signals: PlatformSignalSource | None = None,
        console: ConsoleSinkPort | None = None,
    ) -> None:
        """Build the pipeline.

        Args:
            logger_config: Logger and flush scheduler configuration.
            metrics_config: Metric buffer capacities and sampling interval.
            transport: Remote delivery port. An HttpTransport for
                ``remote_endpoint`` is built when remote is enabled.
            store: Durable store. Defaults to a SQLiteLogStore at
                ``storage_path``.
            signals: Platform signal source for system snapshots.
            console: Console sink. Defaults to ConsoleSink.
        """
        self._owned_transport: HttpTransport | None = None
        if transport is None and logger_config.enable_remote:
            # remote_endpoint is guaranteed by LoggerConfig validation
            self._owned_transport = HttpTransport(logger_config.remote_endpoint or "")
            transport = self._owned_transport
        self._owns_store = store is None
        self._store = store or SQLiteLogStore(logger_config.storage_path)
        self._context = CorrelationContextManager()
        self._logger = Logger(
            logger_config,
            self._context,
            transport=transport,
            store=self._store,
            console=console or ConsoleSink(),
            signals=signals,
        )
        self._metrics = MetricsCollector(
            self._logger, self._context, signals, metrics_config
        )

    @property
    def logger(self) -> Logger:
        return self._logger

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def context(self) -> CorrelationContextManager:
        return self._context

    @property
    def store(self) -> LogStorePort:
        return self._store

    # --- Lifecycle ---

    def start(
        self, user_id: str | None = None, session_id: str | None = None
    ) -> CorrelationContext:
        """Establish the session context and start both timers.

        Returns:
            The session-start correlation context.
        """
        context = self._context.new_session(user_id=user_id, session_id=session_id)
        self._logger.start()
        self._metrics.start()
        self._logger.info(
            "Monitoring system initialized",
            {"session_id": context.session_id, "trace_id": context.trace_id},
        )
        return context

    def destroy(self) -> None:
        """Stop both timers and schedule the final flush."""
        self._metrics.destroy()
        self._logger.destroy()

    async def aclose(self) -> None:
        """Destroy, wait for the final flush and release owned resources."""
        self.destroy()
        await self._logger.wait_idle()
        if self._owns_store and isinstance(self._store, SQLiteLogStore):
            await self._store.close()
        if self._owned_transport is not None:
            await self._owned_transport.aclose()

    async def __aenter__(self) -> "ObservabilityPipeline":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # --- Correlation context ---

    def set_correlation_context(self, context: CorrelationContext) -> None:
        """Replace the correlation context wholesale."""
        self._context.set(context)

    def update_correlation_context(
        self, partial: CorrelationUpdate | None = None, **fields: str | None
    ) -> CorrelationContext:
        """Merge fields into the current correlation context."""
        return self._context.update(partial, **fields)

    def clear_correlation_context(self) -> None:
        self._context.clear()
