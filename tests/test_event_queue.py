"""EventQueue tests."""

import asyncio
from collections.abc import Sequence

import pytest
from structlog.testing import capture_logs

from appflags import (
    AppFlagsError,
    AppFlagsErrorCodes,
    BucketEvent,
    EventQueue,
    EventQueueOptions,
    InMemoryEdgeClient,
    ManualScheduler,
)


class BlockingEdgeClient(InMemoryEdgeClient):
    """Holds every batch send until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()
        self.in_flight = asyncio.Event()

    async def send_event_batch(self, events: Sequence[BucketEvent]) -> None:
        self.in_flight.set()
        await self.release.wait()
        await super().send_event_batch(events)


def make_queue(
    edge: InMemoryEdgeClient | None = None, **options: int
) -> tuple[EventQueue, InMemoryEdgeClient, ManualScheduler]:
    edge = edge or InMemoryEdgeClient()
    scheduler = ManualScheduler()
    queue = EventQueue(edge, scheduler, EventQueueOptions(**options))
    return queue, edge, scheduler


def keys(events: Sequence[BucketEvent]) -> list[str]:
    return [e.user_key for e in events]


def test_defaults() -> None:
    queue, _, _ = make_queue()
    assert queue.queue_max_size == 20000
    assert queue.flush_interval_ms == 30000
    assert queue.queue_flush_size == 1000
    assert len(queue) == 0


def test_flush_size_not_smaller_than_max_size_is_fatal() -> None:
    """flush_size >= max_size は構築時にエラー。"""
    with pytest.raises(AppFlagsError) as exc_info:
        make_queue(queue_flush_size=1000, queue_max_size=1000)
    assert exc_info.value.code == AppFlagsErrorCodes.INVALID_CONFIG


def test_enqueue_appends_in_order() -> None:
    queue, _, scheduler = make_queue(queue_max_size=10, queue_flush_size=5)
    for key in ["a", "b", "c"]:
        queue.enqueue(key)
    assert keys(queue.pending) == ["a", "b", "c"]
    assert scheduler.pending == 0


async def test_threshold_failure_then_manual_flush_retries_everything() -> None:
    """max=5, flush=2: 2 件目で [a, b] を送信、失敗後の手動 flush で [a, b, c]。"""
    queue, edge, scheduler = make_queue(queue_max_size=5, queue_flush_size=2)
    edge.fail_next_send()

    queue.enqueue("a")
    assert scheduler.pending == 0
    queue.enqueue("b")
    assert scheduler.pending == 1
    queue.enqueue("c")

    await scheduler.drain()
    assert [keys(batch) for batch in edge.send_attempts] == [["a", "b"]]
    assert keys(queue.pending) == ["a", "b", "c"]

    await queue.flush()
    assert [keys(batch) for batch in edge.send_attempts] == [["a", "b"], ["a", "b", "c"]]
    assert edge.sent_user_keys == [["a", "b", "c"]]
    assert len(queue) == 0


async def test_failed_flush_leaves_queue_unchanged() -> None:
    queue, edge, _ = make_queue(queue_max_size=10, queue_flush_size=9)
    for key in ["a", "b", "c"]:
        queue.enqueue(key)
    before = queue.pending
    edge.fail_next_send()

    with capture_logs() as logs:
        await queue.flush()

    assert queue.pending == before
    assert queue.is_flushing is False
    assert any(entry["event"] == "Error flushing events" for entry in logs)


async def test_successful_flush_preserves_events_enqueued_mid_flight() -> None:
    """送信中に追加されたイベントは残ること。"""
    edge = BlockingEdgeClient()
    queue, _, _ = make_queue(edge, queue_max_size=10, queue_flush_size=9)
    queue.enqueue("a")
    queue.enqueue("b")

    task = asyncio.create_task(queue.flush())
    await edge.in_flight.wait()
    assert queue.is_flushing is True
    queue.enqueue("c")
    queue.enqueue("d")
    edge.release.set()
    await task

    assert edge.sent_user_keys == [["a", "b"]]
    assert keys(queue.pending) == ["c", "d"]


async def test_only_one_flush_in_flight() -> None:
    """タイマーと閾値が同時に発火しても送信は 1 つだけ。"""
    edge = BlockingEdgeClient()
    queue, _, scheduler = make_queue(
        edge, queue_max_size=10, queue_flush_size=3, flush_interval_ms=1000
    )
    queue.start()
    queue.enqueue("a")
    queue.enqueue("b")

    timer_flush = asyncio.create_task(scheduler.advance(1))
    await edge.in_flight.wait()

    queue.enqueue("c")
    await queue.flush()
    assert scheduler.pending == 0
    assert len(edge.send_attempts) == 0

    edge.release.set()
    await timer_flush

    assert len(edge.send_attempts) == 1
    assert edge.sent_user_keys == [["a", "b"]]
    assert keys(queue.pending) == ["c"]


async def test_queue_never_exceeds_max_size() -> None:
    """満杯時は破棄してログに残し、例外は投げない。"""
    queue, edge, scheduler = make_queue(queue_max_size=5, queue_flush_size=4)

    with capture_logs() as logs:
        for i in range(10):
            queue.enqueue(f"user-{i}")

    assert len(queue) == 5
    drops = [entry for entry in logs if entry["log_level"] == "error"]
    assert len(drops) == 5

    await scheduler.drain()
    assert edge.sent_user_keys == [["user-0", "user-1", "user-2", "user-3"]]
    assert keys(queue.pending) == ["user-4"]


async def test_periodic_timer_flushes() -> None:
    queue, edge, scheduler = make_queue(queue_max_size=100, queue_flush_size=50)
    queue.start()
    queue.start()
    assert scheduler.active_timers == 1

    queue.enqueue("a")
    await scheduler.advance(29)
    assert edge.batches == []
    await scheduler.advance(1)
    assert edge.sent_user_keys == [["a"]]

    await scheduler.advance(30)
    assert len(edge.send_attempts) == 1


async def test_flush_interval_floor() -> None:
    queue, edge, scheduler = make_queue(queue_max_size=100, queue_flush_size=50, flush_interval_ms=1)
    assert queue.flush_interval_ms == 1000
    queue.start()
    queue.enqueue("a")
    await scheduler.advance(1)
    assert edge.sent_user_keys == [["a"]]


async def test_flush_of_empty_queue_is_noop() -> None:
    queue, edge, _ = make_queue()
    await queue.flush()
    assert edge.send_attempts == []


async def test_close_cancels_timer_and_drains() -> None:
    queue, edge, scheduler = make_queue(queue_max_size=100, queue_flush_size=50)
    queue.start()
    queue.enqueue("a")
    queue.enqueue("b")

    await queue.close()

    assert edge.sent_user_keys == [["a", "b"]]
    assert scheduler.active_timers == 0
    queue.enqueue("c")
    await scheduler.advance(300)
    assert len(edge.send_attempts) == 1


async def test_close_drain_failure_is_not_raised() -> None:
    queue, edge, _ = make_queue(queue_max_size=100, queue_flush_size=50)
    queue.enqueue("a")
    edge.fail_next_send()
    await queue.close()
    assert keys(queue.pending) == ["a"]


class RefusingScheduler(ManualScheduler):
    """spawn が常に失敗するスケジューラー (ループ外からの呼び出しを模擬)。"""

    def spawn(self, coro, name: str = "") -> None:
        raise RuntimeError("no running event loop")


async def test_spawn_failure_does_not_wedge_the_flush_flag() -> None:
    """閾値 flush の spawn が失敗してもフラグは戻り、次の flush で送信される。"""
    edge = InMemoryEdgeClient()
    queue = EventQueue(
        edge, RefusingScheduler(), EventQueueOptions(queue_max_size=5, queue_flush_size=2)
    )
    queue.enqueue("a")
    with pytest.raises(RuntimeError):
        queue.enqueue("b")

    assert queue.is_flushing is False
    assert keys(queue.pending) == ["a", "b"]

    await queue.flush()
    assert edge.sent_user_keys == [["a", "b"]]
    assert len(queue) == 0
