"""Bounded in-memory queue of bucket events."""

from __future__ import annotations

import structlog

from . import metrics
from .config import EventQueueOptions
from .edge import EdgeClient
from .models import BucketEvent
from .scheduler import PeriodicTask, Scheduler

logger = structlog.get_logger(__name__)


class EventQueue:
    """Buffers bucket events and delivers them to the edge server in batches.

    A flush is triggered by the periodic timer, by the queue reaching the
    flush size, or by :meth:`close`. Only one flush runs at a time. A flush
    sends the events present when it started and, on success, removes exactly
    those from the head of the queue. On failure the queue is left untouched
    and the same events go out again with the next flush, so the server may
    see duplicates.
    """

    def __init__(
        self,
        edge_client: EdgeClient,
        scheduler: Scheduler,
        options: EventQueueOptions | None = None,
    ) -> None:
        resolved = (options or EventQueueOptions()).resolve()
        self._edge_client = edge_client
        self._scheduler = scheduler
        self._queue_max_size = resolved.queue_max_size
        self._flush_interval_ms = resolved.flush_interval_ms
        self._queue_flush_size = resolved.queue_flush_size
        self._events: list[BucketEvent] = []
        self._is_flushing = False
        self._flush_task: PeriodicTask | None = None

    @property
    def queue_max_size(self) -> int:
        return self._queue_max_size

    @property
    def flush_interval_ms(self) -> int:
        return self._flush_interval_ms

    @property
    def queue_flush_size(self) -> int:
        return self._queue_flush_size

    @property
    def is_flushing(self) -> bool:
        return self._is_flushing

    @property
    def pending(self) -> list[BucketEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def start(self) -> None:
        """Arm the periodic flush timer."""
        if self._flush_task is not None and not self._flush_task.cancelled:
            return
        self._flush_task = self._scheduler.schedule_periodic(
            self._flush_interval_ms / 1000,
            self._flush_periodic,
            name="event-queue-flush",
        )

    def enqueue(self, user_key: str) -> None:
        """Record an access by ``user_key``. Drops the event when the queue is full."""
        if len(self._events) >= self._queue_max_size:
            metrics.events_dropped_total.add(1)
            logger.error(
                "Discarding bucket event due to the event queue reaching maximum size",
                queue_max_size=self._queue_max_size,
            )
            return

        self._events.append(BucketEvent.create(user_key))
        metrics.events_enqueued_total.add(1)

        if len(self._events) >= self._queue_flush_size:
            batch = self._begin_flush()
            if batch is not None:
                delivery = self._deliver(batch)
                try:
                    self._scheduler.spawn(delivery, name="event-queue-size-flush")
                except Exception:
                    # the event stays queued for the next flush
                    delivery.close()
                    self._is_flushing = False
                    raise

    async def _flush_periodic(self) -> None:
        logger.debug("Performing periodic event queue flush")
        await self.flush()

    def _begin_flush(self) -> list[BucketEvent] | None:
        # the batch is captured synchronously, before the first suspension point
        if self._is_flushing:
            logger.debug("Event flush already in progress, not triggering flush")
            return None
        if not self._events:
            logger.debug("No events to flush, not triggering flush")
            return None
        self._is_flushing = True
        return list(self._events)

    async def _deliver(self, batch: list[BucketEvent]) -> None:
        try:
            await self._edge_client.send_event_batch(batch)
            # events appended while the batch was in flight stay queued
            del self._events[: len(batch)]
            metrics.events_flushed_total.add(len(batch))
        except Exception as e:
            metrics.flush_failures_total.add(1)
            logger.error(
                "Error flushing events",
                event_count=len(batch),
                error=str(e),
            )
        finally:
            self._is_flushing = False

    async def flush(self) -> None:
        """Send the currently queued events as one batch.

        A no-op when a flush is already in flight or the queue is empty.
        Delivery failures are logged, never raised.
        """
        batch = self._begin_flush()
        if batch is not None:
            await self._deliver(batch)

    async def close(self) -> None:
        """Stop the timer and make one best-effort attempt to drain the queue."""
        if self._flush_task is not None:
            self._flush_task.cancel()
        # TODO: wait for an in-flight flush before the final drain
        logger.debug("Flushing remaining events", event_count=len(self._events))
        await self.flush()
