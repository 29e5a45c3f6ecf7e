"""
Clocks and the cooperative timer facility.

Every TimeFrame is driven by a Clock that provides two things:

    now_ms()                       current epoch time in milliseconds
    call_later(delay_ms, fn)       one-shot timer, returns a TimerHandle

SystemClock runs all timers on a single daemon thread, so frame callbacks
never execute in parallel with each other. ManualClock keeps virtual time
and only fires timers when advanced, which makes timelines reproducible
(used by the preview mode and by the tests).
"""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class TimerHandle:
    """A scheduled one-shot callback."""

    __slots__ = ('deadline', 'callback', 'cancelled', '_seq')

    _counter = itertools.count()

    def __init__(self, deadline: float, callback: Callable[[], None]):
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False
        self._seq = next(self._counter)

    def cancel(self):
        self.cancelled = True

    def __lt__(self, other: "TimerHandle") -> bool:
        return (self.deadline, self._seq) < (other.deadline, other._seq)

    def __repr__(self) -> str:
        state = 'cancelled' if self.cancelled else 'pending'
        return f"TimerHandle(deadline={self.deadline}, {state})"


class Clock:
    """Interface for time sources with one-shot timers."""

    def now_ms(self) -> float:
        raise NotImplementedError()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError()

    def cancel(self, handle: Optional[TimerHandle]):
        """Cancel a pending timer. None and already-fired handles are ignored."""
        if handle is not None:
            handle.cancel()


class SystemClock(Clock):
    """
    Wall-clock time with a single background timer thread.

    The thread sleeps on a condition variable until the earliest deadline,
    so timers scheduled from any thread (including from inside a callback)
    wake it up early when needed.

    Usage:
        clock = SystemClock()
        clock.call_later(1000, lambda: print("one second later"))
        ...
        clock.stop()
    """

    def __init__(self, time_source: Callable[[], float] = time.time):
        """
        Initialize the clock.

        Args:
            time_source: Returns the current time in seconds since the epoch
        """
        self.time_source = time_source
        self._queue: List[TimerHandle] = []
        self._cond = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    def now_ms(self) -> float:
        return self.time_source() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self.now_ms() + max(delay_ms, 0), callback)
        with self._cond:
            heapq.heappush(self._queue, handle)
            self._ensure_thread()
            self._cond.notify()
        return handle

    @property
    def pending(self) -> int:
        """Number of timers that have not fired or been cancelled."""
        with self._cond:
            return sum(1 for h in self._queue if not h.cancelled)

    def _ensure_thread(self):
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(
            target=self._run,
            name="KairosTimer",
            daemon=True
        )
        self._thread.start()

    def _run(self):
        """Timer loop (runs in background thread)."""
        logger.debug("Timer thread started")

        while True:
            with self._cond:
                handle = None
                while self._running:
                    while self._queue and self._queue[0].cancelled:
                        heapq.heappop(self._queue)
                    if not self._queue:
                        self._cond.wait()
                        continue
                    wait_ms = self._queue[0].deadline - self.now_ms()
                    if wait_ms <= 0:
                        handle = heapq.heappop(self._queue)
                        break
                    self._cond.wait(wait_ms / 1000.0)
                if not self._running:
                    break

            try:
                handle.callback()
            except Exception as e:
                logger.exception(f"Timer callback failed: {e}")

        logger.debug("Timer thread stopped")

    def stop(self, timeout: float = 2.0):
        """Stop the timer thread and drop all pending timers."""
        with self._cond:
            self._running = False
            for handle in self._queue:
                handle.cancel()
            self._queue.clear()
            self._cond.notify_all()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None


class ManualClock(Clock):
    """
    Virtual clock that only moves when told to.

    Timers fire in deadline order during advance()/advance_to(), and now_ms()
    reports each timer's own deadline while its callback runs. Timers
    scheduled by a callback fire within the same advance if they fall inside
    the window.
    """

    def __init__(self, start_ms: float = 0):
        self._now = start_ms
        self._queue: List[TimerHandle] = []

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self._now + max(delay_ms, 0), callback)
        heapq.heappush(self._queue, handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._queue if not h.cancelled)

    def next_deadline(self) -> Optional[float]:
        """Deadline of the earliest pending timer, or None."""
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)
        return self._queue[0].deadline if self._queue else None

    def advance_to(self, target_ms: float) -> int:
        """
        Move time forward to target_ms, firing every timer that falls due.

        Returns:
            Number of timers fired
        """
        fired = 0
        while True:
            deadline = self.next_deadline()
            if deadline is None or deadline > target_ms:
                break
            handle = heapq.heappop(self._queue)
            self._now = max(self._now, handle.deadline)
            handle.callback()
            fired += 1
        self._now = max(self._now, target_ms)
        return fired

    def advance(self, delta_ms: float) -> int:
        """Move time forward by delta_ms. See advance_to()."""
        return self.advance_to(self._now + delta_ms)
