"""Buffered, lossy, priority-aware delivery of findings.

The buffer is bounded: when it is full, a fixed fraction of the oldest
findings is dropped before the new one is appended, and the drop is counted.
A failed or cancelled delivery puts its batch back at the front of the buffer
so the next flush retries it. Delivery never happens on the enqueueing
caller's stack; priority findings only schedule an out-of-band flush.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from collections import deque
from typing import Any

from clawtrap.errors import DeliveryError
from clawtrap.logging import get_logger
from clawtrap.reporting.models import QueuedEvent
from clawtrap.reporting.sinks import ReportingSink

log = get_logger("clawtrap.reporting.pipeline")


class ReportingPipeline:
    """Buffer findings and deliver them to a :class:`ReportingSink`."""

    def __init__(
        self,
        sink: ReportingSink,
        *,
        max_size: int = 50000,
        drop_fraction: float = 0.1,
        flush_interval_seconds: float = 5.0,
        batch_size: int = 1000,
    ) -> None:
        """Initialize the pipeline.

        Args:
            sink: Where batches are delivered.
            max_size: Maximum number of buffered findings.
            drop_fraction: Fraction of ``max_size`` dropped, oldest first,
                when a finding arrives at a full buffer.
            flush_interval_seconds: Interval of the periodic flush.
            batch_size: Maximum findings per delivery call.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got: {max_size}")
        if not 0 < drop_fraction <= 1:
            raise ValueError(f"drop_fraction must be in (0, 1], got: {drop_fraction}")

        self._sink = sink
        self._max_size = max_size
        self._drop_count = max(1, int(max_size * drop_fraction))
        self._flush_interval_seconds = flush_interval_seconds
        self._batch_size = batch_size

        self._buffer: deque[QueuedEvent] = deque()
        self._lock = threading.Lock()
        self._flush_lock = asyncio.Lock()
        self._dropped = 0
        self._delivered = 0

        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Task[bool]] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    @property
    def sink(self) -> ReportingSink:
        return self._sink

    @property
    def dropped_count(self) -> int:
        """Findings dropped since start; never decreases."""
        with self._lock:
            return self._dropped

    @property
    def delivered_count(self) -> int:
        with self._lock:
            return self._delivered

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict[str, Any]:
        """Get pipeline statistics."""
        with self._lock:
            return {
                "queued": len(self._buffer),
                "dropped": self._dropped,
                "delivered": self._delivered,
                "max_size": self._max_size,
                "running": self._running,
            }

    def enqueue(self, finding: dict[str, Any], *, priority: bool = False) -> None:
        """Buffer a finding; a priority finding also schedules a flush."""
        with self._lock:
            dropped = 0
            if len(self._buffer) >= self._max_size:
                dropped = min(self._drop_count, len(self._buffer))
                for _ in range(dropped):
                    self._buffer.popleft()
                self._dropped += dropped
            self._buffer.append(QueuedEvent(finding=finding, priority=priority))
            total_dropped = self._dropped

        if dropped:
            log.warning("report_queue_overflow", dropped=dropped, total_dropped=total_dropped)
        if priority:
            self._schedule_flush()

    async def flush(self) -> bool:
        """Deliver everything currently buffered.

        Failures are logged and the undelivered batch is re-queued for the
        next flush; nothing is retried here.

        Returns:
            True if the buffer was fully delivered.
        """
        async with self._flush_lock:
            while True:
                batch = self._take_batch()
                if not batch:
                    return True
                if not await self._deliver(batch):
                    return False

    async def start(self) -> None:
        """Start the periodic flush loop."""
        if self._running:
            log.warning("reporting_pipeline_already_running")
            return

        self._running = True
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.create_task(self._flush_loop())
        log.info("reporting_pipeline_started", interval=self._flush_interval_seconds)

    async def stop(self) -> None:
        """Stop the loop, wait for scheduled flushes and flush once more."""
        self._running = False
        task = self._task
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            self._task = None

        await self.wait_for_pending()
        self._loop = None
        delivered = await self.flush()
        await self._sink.close()
        log.info(
            "reporting_pipeline_stopped",
            final_flush_delivered=delivered,
            undelivered=len(self),
            dropped=self.dropped_count,
        )

    async def wait_for_pending(self) -> None:
        """Wait for the out-of-band flushes scheduled so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _schedule_flush(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Enqueued from a worker thread: hand the flush to the pipeline's loop
            loop = self._loop
            if loop is not None and loop.is_running():
                loop.call_soon_threadsafe(self._spawn_flush)
            # Otherwise the periodic or final flush picks it up
            return
        self._spawn_flush()

    def _spawn_flush(self) -> None:
        task = asyncio.get_running_loop().create_task(self.flush())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _take_batch(self) -> list[QueuedEvent]:
        with self._lock:
            count = min(self._batch_size, len(self._buffer))
            return [self._buffer.popleft() for _ in range(count)]

    def _requeue(self, batch: list[QueuedEvent]) -> None:
        with self._lock:
            self._buffer.extendleft(reversed(batch))
            overflow = len(self._buffer) - self._max_size
            for _ in range(max(0, overflow)):
                self._buffer.popleft()
            if overflow > 0:
                self._dropped += overflow

    async def _deliver(self, batch: list[QueuedEvent]) -> bool:
        delivered = False
        try:
            delivered = await self._sink.deliver([event.finding for event in batch])
        except DeliveryError as e:
            log.warning("report_delivery_failed", count=len(batch), error=str(e))
        except Exception:
            log.exception("report_delivery_error", count=len(batch))
        finally:
            if delivered:
                with self._lock:
                    self._delivered += len(batch)
            else:
                self._requeue(batch)
        return delivered

    async def _flush_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._flush_interval_seconds)
                if not self._running:
                    break
                await self.flush()
            except asyncio.CancelledError:
                break
            except Exception:
                log.exception("report_flush_error")
