"""Periodic execution facilities handed to a :class:`PublicationScheduler`.

The scheduler never owns a timer; the caller supplies one of these (or any
object with the same ``schedule_at_fixed_rate`` method).  All three run
fixed-rate schedules anchored on the *scheduled* time, so the latency of one
run does not push back the runs after it.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import threading
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class ScheduledTask(Protocol):
    """Cancellable handle of a periodic schedule."""

    def cancel(self) -> None:
        ...


class PeriodicExecutor(Protocol):
    """Runs a callable repeatedly at a fixed rate."""

    def schedule_at_fixed_rate(
        self,
        fn: Callable[[], None],
        initial_delay_ms: float,
        period_ms: float,
    ) -> ScheduledTask:
        ...


def _check_timing(initial_delay_ms: float, period_ms: float) -> None:
    if period_ms <= 0:
        raise ValueError(f"period_ms must be positive, got {period_ms!r}")
    if initial_delay_ms < 0:
        raise ValueError(f"initial_delay_ms must be >= 0, got {initial_delay_ms!r}")


class _QueuedTask:
    """Periodic task living in a time-ordered queue."""

    def __init__(self, fn: Callable[[], None], period: float, lock) -> None:
        self.fn = fn
        self.period = period
        self._lock = lock
        self.cancelled = False
        self.runs = 0

    def cancel(self) -> None:
        with self._lock:
            self.cancelled = True


# ============== Threaded ==============


class ThreadedPeriodicExecutor:
    """Single worker thread serving any number of fixed-rate schedules.

    Runs never overlap: all tasks share the one worker.  When the worker falls
    behind, overdue runs execute back to back rather than being skipped.  An
    exception escaping a task is logged and the task stays scheduled.

    Args:
        name: worker thread name.
        clock: monotonic clock in seconds.
    """

    def __init__(
        self,
        name: str = "periodic-executor",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: list[tuple[float, int, _QueuedTask]] = []
        self._seq = itertools.count()
        self._thread: Optional[threading.Thread] = None
        self._shutdown = False

    def schedule_at_fixed_rate(
        self,
        fn: Callable[[], None],
        initial_delay_ms: float,
        period_ms: float,
    ) -> _QueuedTask:
        _check_timing(initial_delay_ms, period_ms)
        with self._cond:
            if self._shutdown:
                raise RuntimeError(f"Executor '{self.name}' is shut down")
            task = _QueuedTask(fn, period_ms / 1000.0, self._cond)
            due = self._clock() + initial_delay_ms / 1000.0
            heapq.heappush(self._queue, (due, next(self._seq), task))
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
                self._thread.start()
            self._cond.notify()
        return task

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop the worker; tasks already running finish, nothing new starts."""
        with self._cond:
            self._shutdown = True
            self._queue.clear()
            self._cond.notify_all()
            thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def __enter__(self) -> ThreadedPeriodicExecutor:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def _next_due(self) -> Optional[tuple[float, _QueuedTask]]:
        """Block until a task is due; ``None`` once shut down.  Caller holds the lock."""
        while not self._shutdown:
            while self._queue and self._queue[0][2].cancelled:
                heapq.heappop(self._queue)
            if not self._queue:
                self._cond.wait()
                continue
            due, _, task = self._queue[0]
            delay = due - self._clock()
            if delay > 0:
                self._cond.wait(delay)
                continue
            heapq.heappop(self._queue)
            return due, task
        return None

    def _run(self) -> None:
        while True:
            with self._cond:
                entry = self._next_due()
            if entry is None:
                return
            due, task = entry
            try:
                task.fn()
            except Exception:
                logger.exception("Periodic task %r failed on run %d", task.fn, task.runs)
            with self._cond:
                task.runs += 1
                if not task.cancelled and not self._shutdown:
                    heapq.heappush(self._queue, (due + task.period, next(self._seq), task))


# ============== asyncio ==============


class _LoopTask:
    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._lock = threading.Lock()
        self._timer: Optional[asyncio.TimerHandle] = None
        self.cancelled = False
        self.runs = 0

    def cancel(self) -> None:
        with self._lock:
            self.cancelled = True
            timer = self._timer
        if timer is not None:
            self._loop.call_soon_threadsafe(timer.cancel)


class AsyncioPeriodicExecutor:
    """Fixed-rate schedules on an asyncio event loop.

    Callbacks run on the loop thread, one at a time.  Scheduling and
    cancelling are safe from any thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def schedule_at_fixed_rate(
        self,
        fn: Callable[[], None],
        initial_delay_ms: float,
        period_ms: float,
    ) -> _LoopTask:
        _check_timing(initial_delay_ms, period_ms)
        task = _LoopTask(self._loop)
        period = period_ms / 1000.0

        def fire(due: float) -> None:
            if task.cancelled:
                return
            try:
                fn()
            except Exception:
                logger.exception("Periodic task %r failed on run %d", fn, task.runs)
            task.runs += 1
            arm(due + period)

        def arm(due: float) -> None:
            with task._lock:
                if task.cancelled:
                    return
                task._timer = self._loop.call_at(due, fire, due)

        def start() -> None:
            arm(self._loop.time() + initial_delay_ms / 1000.0)

        self._loop.call_soon_threadsafe(start)
        return task


# ============== Manual (virtual time) ==============


class ManualExecutor:
    """Deterministic executor driven by the caller in virtual milliseconds.

    Nothing runs until :meth:`advance` or :meth:`run_ticks` is called, which
    makes scheduler behavior fully reproducible in tests.  :meth:`now_ms` can
    double as the wall clock of a realtime scheduler.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._lock = threading.RLock()
        self._queue: list[tuple[float, int, _QueuedTask]] = []
        self._seq = itertools.count()

    def now_ms(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of live (non-cancelled) schedules."""
        with self._lock:
            return sum(1 for _, _, task in self._queue if not task.cancelled)

    def schedule_at_fixed_rate(
        self,
        fn: Callable[[], None],
        initial_delay_ms: float,
        period_ms: float,
    ) -> _QueuedTask:
        _check_timing(initial_delay_ms, period_ms)
        with self._lock:
            task = _QueuedTask(fn, float(period_ms), self._lock)
            heapq.heappush(self._queue, (self._now + initial_delay_ms, next(self._seq), task))
        return task

    def _run_one(self, until: float) -> bool:
        """Run the earliest run due at or before *until*; ``False`` if there is none."""
        with self._lock:
            while self._queue and self._queue[0][2].cancelled:
                heapq.heappop(self._queue)
            if not self._queue or self._queue[0][0] > until:
                return False
            due, _, task = heapq.heappop(self._queue)
            self._now = max(self._now, due)
        try:
            task.fn()
        except Exception:
            logger.exception("Periodic task %r failed on run %d", task.fn, task.runs)
        with self._lock:
            task.runs += 1
            if not task.cancelled:
                heapq.heappush(self._queue, (due + task.period, next(self._seq), task))
        return True

    def advance(self, ms: float) -> int:
        """Move virtual time forward by *ms*, running every run that falls due.

        Returns:
            Number of runs executed.
        """
        if ms < 0:
            raise ValueError("cannot move time backwards")
        target = self._now + ms
        executed = 0
        while self._run_one(target):
            executed += 1
        self._now = max(self._now, target)
        return executed

    def run_ticks(self, count: int) -> int:
        """Run the next *count* runs in due order, jumping virtual time to each."""
        executed = 0
        while executed < count and self._run_one(float("inf")):
            executed += 1
        return executed
