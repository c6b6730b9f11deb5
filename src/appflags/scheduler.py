"""Periodic task scheduling.

Timers used by the synchronizer and the event queue go through a
:class:`Scheduler` so that they can be armed, fired and cancelled
explicitly. :class:`AsyncioScheduler` runs on the current event loop;
:class:`ManualScheduler` advances virtual time for tests.
"""

from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

PeriodicCallback = Callable[[], Awaitable[None]]


async def _run_logged(awaitable: Awaitable[None], name: str) -> None:
    try:
        await awaitable
    except Exception as e:
        logger.error("Scheduled task failed", task=name, error=str(e), exc_info=True)


class PeriodicTask(ABC):
    """Handle for an armed periodic timer."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel future firings. A firing already in progress is not interrupted."""
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool: ...


class Scheduler(ABC):
    """Abstract scheduler."""

    @abstractmethod
    def schedule_periodic(
        self, interval_seconds: float, callback: PeriodicCallback, name: str = ""
    ) -> PeriodicTask:
        """Fire ``callback`` every ``interval_seconds`` until cancelled."""
        ...

    @abstractmethod
    def spawn(self, coro: Coroutine[Any, Any, None], name: str = "") -> None:
        """Run ``coro`` in the background without awaiting it."""
        ...


class _AsyncioPeriodicTask(PeriodicTask):
    def __init__(
        self,
        scheduler: AsyncioScheduler,
        interval_seconds: float,
        callback: PeriodicCallback,
        name: str,
    ) -> None:
        self._scheduler = scheduler
        self._interval_seconds = interval_seconds
        self._callback = callback
        self._name = name
        self._cancelled = False
        self._task: asyncio.Task[None] = asyncio.get_running_loop().create_task(self._loop())

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            # each firing runs on its own task so cancel() never interrupts it
            self._scheduler.spawn(self._callback(), name=self._name)

    def cancel(self) -> None:
        self._cancelled = True
        if self._task.done() or self._task.get_loop().is_closed():
            return
        self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self) -> None:
        self._background: set[asyncio.Task[None]] = set()

    def schedule_periodic(
        self, interval_seconds: float, callback: PeriodicCallback, name: str = ""
    ) -> PeriodicTask:
        return _AsyncioPeriodicTask(self, interval_seconds, callback, name)

    def spawn(self, coro: Coroutine[Any, Any, None], name: str = "") -> None:
        task = asyncio.get_running_loop().create_task(_run_logged(coro, name))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_idle(self) -> None:
        """Wait until every spawned task has finished."""
        while self._background:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.gather(*list(self._background))


class _ManualPeriodicTask(PeriodicTask):
    def __init__(
        self,
        scheduler: ManualScheduler,
        interval_seconds: float,
        callback: PeriodicCallback,
        name: str,
    ) -> None:
        self._scheduler = scheduler
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.name = name
        self.next_due = scheduler.now + interval_seconds
        self._cancelled = False

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._scheduler._forget(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """テスト用の仮想時間スケジューラー。

    ``advance`` で仮想時間を進めると、期限が来たタイマーを順番に実行する。
    ``spawn`` されたコルーチンは ``drain`` まで実行されない。
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._timers: list[_ManualPeriodicTask] = []
        self._pending: list[tuple[Coroutine[Any, Any, None], str]] = []

    @property
    def now(self) -> float:
        return self._now

    @property
    def active_timers(self) -> int:
        return len(self._timers)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule_periodic(
        self, interval_seconds: float, callback: PeriodicCallback, name: str = ""
    ) -> PeriodicTask:
        timer = _ManualPeriodicTask(self, interval_seconds, callback, name)
        self._timers.append(timer)
        return timer

    def _forget(self, timer: _ManualPeriodicTask) -> None:
        self._timers.remove(timer)

    def spawn(self, coro: Coroutine[Any, Any, None], name: str = "") -> None:
        self._pending.append((coro, name))

    async def drain(self) -> None:
        """Run spawned coroutines, including any they spawn, in FIFO order."""
        while self._pending:
            coro, name = self._pending.pop(0)
            await _run_logged(coro, name)

    async def advance(self, seconds: float) -> None:
        """Move virtual time forward, firing due timers in deadline order."""
        target = self._now + seconds
        while True:
            due = [t for t in self._timers if t.next_due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.next_due)
            self._now = timer.next_due
            timer.next_due += timer.interval_seconds
            await _run_logged(timer.callback(), timer.name)
            await self.drain()
        self._now = target
