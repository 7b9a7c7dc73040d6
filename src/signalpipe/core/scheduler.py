"""Flush scheduler draining the logger's buffer to the transport.

Drains are synchronous: the buffer is swapped out in one step, then a
single delivery task runs on the event loop. While that task is in flight
no other drain starts, so batches reach the transport in call order. A
failed batch goes back to the front of the buffer and is retried on the
next timer tick; ``flush_interval`` doubles as the backoff.
"""

import asyncio
import enum
import logging
from collections.abc import Sequence

from signalpipe.core.buffers import LogBuffer
from signalpipe.core.config import LoggerConfig
from signalpipe.core.encoding.wire import encode_payload
from signalpipe.core.models import LogEntry
from signalpipe.core.ports import LogStorePort, TransportPort

INTERNAL_LOGGER_NAME = "signalpipe.internal"

_internal_log = logging.getLogger(INTERNAL_LOGGER_NAME)


class FlushState(enum.Enum):
    IDLE = "idle"
    DRAINING = "draining"
    DELIVERING = "delivering"
    DEGRADING = "degrading"


class FlushScheduler:
    """Periodic and size-triggered delivery of buffered log entries.

    Args:
        buffer: The logger's pending-entry buffer.
        config: Logger configuration (remote/file switches, retry policy).
        transport: Remote delivery port, required when remote is enabled.
        store: Durable fallback store, written when file persistence is
            enabled or remote delivery has been suspended.
    """

    def __init__(
        self,
        buffer: LogBuffer,
        config: LoggerConfig,
        transport: TransportPort | None = None,
        store: LogStorePort | None = None,
    ) -> None:
        self._buffer = buffer
        self._config = config
        self._transport = transport
        self._store = store
        self._state = FlushState.IDLE
        self._timer: asyncio.Task[None] | None = None
        self._in_flight: asyncio.Task[bool] | None = None
        self._final: asyncio.Task[None] | None = None
        # ids of entries already written to the store, kept until delivered
        self._persisted: set[int] = set()
        self._consecutive_failures = 0
        self._remote_suspended = False
        self._retry_pending = False
        self.attempts = 0
        self.deliveries = 0

    @property
    def state(self) -> FlushState:
        return self._state

    @property
    def remote_suspended(self) -> bool:
        """True once ``max_retries`` consecutive deliveries have failed."""
        return self._remote_suspended

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the periodic timer on the running event loop."""
        if self._timer is not None and not self._timer.done():
            return
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())

    def stop(self) -> None:
        """Cancel the periodic timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def destroy(self) -> None:
        """Stop the timer and schedule one best-effort final flush."""
        self.stop()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _internal_log.debug(
                "No running event loop; %d entries left unflushed", len(self._buffer)
            )
            return
        self._final = loop.create_task(self.flush())

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self._config.flush_interval)
            if self._buffer:
                self.trigger()

    # --- Draining ---

    def trigger(self) -> asyncio.Task[bool] | None:
        """Drain the buffer and start a delivery.

        Returns:
            The delivery task, or None when a delivery is already in flight,
            the buffer is empty, or no event loop is running.
        """
        if self.in_flight or not self._buffer:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        self._state = FlushState.DRAINING
        self._retry_pending = False
        batch = self._buffer.drain()
        self._state = FlushState.DELIVERING
        task = loop.create_task(self._deliver(batch))
        task.add_done_callback(self._on_delivered)
        self._in_flight = task
        return task

    def notify_full(self) -> asyncio.Task[bool] | None:
        """Size-threshold trigger used by the logger.

        Ignored while a failed batch waits for its timer-paced retry.
        """
        if self._retry_pending:
            return None
        return self.trigger()

    async def flush(self) -> None:
        """Wait for any in-flight delivery, then drain and deliver once more."""
        while self._in_flight is not None and not self._in_flight.done():
            await self._in_flight
        task = self.trigger()
        if task is not None:
            await task

    async def wait_idle(self) -> None:
        """Wait until no delivery or final flush is outstanding."""
        if self._final is not None and self._final is not asyncio.current_task():
            await self._final
        while self._in_flight is not None and not self._in_flight.done():
            await self._in_flight

    def _on_delivered(self, task: "asyncio.Task[bool]") -> None:
        if task.cancelled():
            self._state = FlushState.IDLE
            return
        error = task.exception()
        if error is not None:
            _internal_log.error("Log delivery crashed", exc_info=error)
            self._state = FlushState.IDLE
            return
        # a full buffer after a success is drained right away
        if task.result() and len(self._buffer) >= self._config.batch_size:
            self.trigger()

    # --- Delivery ---

    async def _deliver(self, batch: list[LogEntry]) -> bool:
        """Deliver one batch. Returns True on success, False on failure."""
        if self._config.enable_file:
            await self._persist(batch)

        if not self._config.enable_remote or self._transport is None:
            self._release(batch)
            self._state = FlushState.IDLE
            return True

        if self._remote_suspended:
            await self._degrade(batch)
            return False

        # @tra: Core.Scheduler.Delivery
        self.attempts += 1
        payload = encode_payload(
            batch, self._config.source, self._config.version, self._config.environment
        )
        try:
            await self._transport.send(payload)
        except Exception as e:
            return await self._handle_failure(batch, e)

        self._consecutive_failures = 0
        self.deliveries += 1
        self._release(batch)
        self._state = FlushState.IDLE
        return True

    async def _handle_failure(self, batch: list[LogEntry], error: Exception) -> bool:
        self._state = FlushState.DEGRADING
        self._consecutive_failures += 1
        _internal_log.warning(
            "Failed to flush %d logs (attempt %d): %s", len(batch), self.attempts, error
        )
        if self._consecutive_failures >= self._config.max_retries:
            # @tra: Core.Scheduler.RetryExhausted
            self._remote_suspended = True
            _internal_log.warning(
                "Remote logging suspended after %d consecutive failures",
                self._consecutive_failures,
            )
            await self._degrade(batch)
            return False
        # @tra: Core.Scheduler.Requeue
        self._buffer.requeue(batch)
        self._retry_pending = True
        self._state = FlushState.IDLE
        return False

    async def _degrade(self, batch: list[LogEntry]) -> None:
        """Hand a batch to the durable store only and drop it from memory."""
        self._state = FlushState.DEGRADING
        await self._persist(batch)
        self._release(batch)
        self._state = FlushState.IDLE

    async def _persist(self, batch: Sequence[LogEntry]) -> None:
        if self._store is None:
            return
        fresh = [e for e in batch if id(e) not in self._persisted]
        if not fresh:
            return
        try:
            await self._store.append(fresh)
        except Exception:
            _internal_log.warning(
                "Failed to persist %d logs", len(fresh), exc_info=True
            )
            return
        self._persisted.update(id(e) for e in fresh)

    def _release(self, batch: Sequence[LogEntry]) -> None:
        for entry in batch:
            self._persisted.discard(id(entry))
