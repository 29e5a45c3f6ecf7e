"""
Time Frame - begin/tick/end state machine

    PENDING ──start()/begins_at──▶ STARTED ──ends_at──▶ ENDED
                                     │  ▲
                              pause()│  │resume()
                                     ▼  │
                                   (paused: no ticks)

On entering STARTED the frame publishes `began`, ticks once immediately
(if it has a tick interval) and schedules its end (if bounded). Each tick
schedules the next one as a fresh one-shot timer whose deadline is
recomputed from the clock, optionally aligned to a wall-clock boundary:

    next = now + interval - ((now + interval) mod basis)

where basis is the interval itself (sync=True), an explicit number of
milliseconds (sync=N), or no alignment at all (sync=False). With
interval=1000 and sync=60000 ticks land exactly on the minute.

Pausing only cancels the tick timer. Begin and end still happen on time.
Resuming publishes `unmuted` and ticks immediately, starting a fresh cycle.

Every event is published on the frame's own bus as `<event>` and, for named
frames, `<name>/<event>`, with arguments (data, remaining_ms) where
remaining_ms = related_to - now.

State changes happen under the frame lock; events are queued there and
delivered in order once the lock is released, so a subscriber may pause,
resume or end any frame, from any thread.
"""

import functools
import logging
import math
import threading
from collections import deque
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

import numpy as np

from ..interfaces.frame_snapshot import ResolvedFrame
from .clock import Clock, TimerHandle
from .event_bus import EventBus, Subscription

Number = Union[int, float]

FRAME_EVENTS = ('began', 'ticked', 'ended', 'muted', 'unmuted')


class FrameState(Enum):
    """Lifecycle state of a time frame."""
    PENDING = "PENDING"    # Waiting for begins_at
    STARTED = "STARTED"    # Began, ticking if configured
    ENDED = "ENDED"        # Terminal


def sync_basis(interval: Number, sync: Union[bool, Number, None]) -> Number:
    """Wall-clock modulus ticks align to, 0 for free-running ticks."""
    if sync is True:
        return interval
    if sync is False or sync is None:
        return 0
    if isinstance(sync, (int, float)) and sync > 0:
        return sync
    return 0


def next_tick(now: Number, interval: Number, sync: Union[bool, Number, None]) -> Number:
    """
    Calculate when the next tick should fire.

    Args:
        now: Current timestamp (ms)
        interval: Tick length (ms)
        sync: True to align to the interval, a number to align to that many
            ms on the wall clock, False for no alignment

    Returns:
        Timestamp (ms) of the next tick
    """
    basis = sync_basis(interval, sync)
    target = now + interval
    if basis:
        target -= target % basis
    return target


class TimeFrame:
    """
    A scheduled interval that publishes began/ticked/ended events.

    Usage:
        frame = TimeFrame(ResolvedFrame(name='countdown', begins_at=t0,
                                        ends_at=t1, tick_interval=1000),
                          clock=SystemClock())
        frame.subscribe('ticked', lambda data, remaining: ...)
        frame.start()
    """

    LATENESS_HISTORY = 256

    def __init__(
        self,
        frame: ResolvedFrame,
        clock: Clock,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize a time frame.

        Args:
            frame: Normalized frame description
            clock: Time source and timer facility
            logger: Diagnostic sink (default: module logger)
        """
        self._frame = frame
        self._clock = clock
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._bus = EventBus(self.logger)
        self._lock = threading.RLock()

        self._started = False
        self._ended = False
        self._paused = False

        self._begin_timer: Optional[TimerHandle] = None
        self._end_timer: Optional[TimerHandle] = None
        self._tick_timer: Optional[TimerHandle] = None
        # Bumped whenever the tick timer is cancelled so that a callback
        # already dequeued by the timer thread becomes a no-op.
        self._tick_generation = 0

        self._tick_count = 0
        self._last_remaining_ms: Optional[Number] = None
        self._lateness_ms = deque(maxlen=self.LATENESS_HISTORY)

        # Events are queued under the lock and delivered outside it, so
        # subscribers may call into any frame from any thread.
        self._outbox = deque()
        self._delivering = False

        label = frame.name or 'unnamed'
        if frame.tick_interval > 0:
            self.logger.info(
                f"Frame {label} created: ticks every {frame.tick_interval}ms "
                f"from {frame.begins_at} until {frame.ends_at}"
            )
        else:
            self.logger.info(
                f"Frame {label} created: begins at {frame.begins_at}, ends at {frame.ends_at}"
            )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def name(self) -> Optional[str]:
        return self._frame.name

    @property
    def begins_at(self) -> Number:
        return self._frame.begins_at

    @property
    def ends_at(self) -> Number:
        return self._frame.ends_at

    @property
    def tick_interval(self) -> Number:
        return self._frame.tick_interval

    @property
    def sync_ticks(self) -> Union[bool, Number]:
        return self._frame.sync_ticks

    @property
    def related_to(self) -> Optional[Number]:
        return self._frame.related_to

    @property
    def data(self) -> Any:
        return self._frame.data

    @property
    def resolved(self) -> ResolvedFrame:
        return self._frame

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_ended(self) -> bool:
        return self._ended

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def state(self) -> FrameState:
        if self._ended:
            return FrameState.ENDED
        if self._started:
            return FrameState.STARTED
        return FrameState.PENDING

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_remaining_ms(self) -> Optional[Number]:
        """remaining_ms carried by the most recent event, None before any event."""
        return self._last_remaining_ms

    def remaining_ms(self) -> Number:
        """Milliseconds from now until related_to (negative once passed)."""
        related = self._frame.related_to
        if related is None or (isinstance(related, float) and math.isnan(related)):
            return 0
        return related - self._clock.now_ms()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, channel: str, fn: Callable) -> Subscription:
        return self._bus.subscribe(channel, fn)

    def unsubscribe(self, handle: Subscription):
        self._bus.unsubscribe(handle)

    def _publish(self, event: str):
        """Queue an event for delivery. Called with the lock held."""
        self._outbox.append((event, self.remaining_ms()))

    def _flush(self):
        """
        Deliver queued events in order, without holding the lock.

        Only one thread delivers at a time. Events queued meanwhile (by a
        subscriber, or by another thread) are delivered by that thread
        before it returns.
        """
        while True:
            with self._lock:
                if self._delivering or not self._outbox:
                    return
                self._delivering = True
                event, remaining = self._outbox.popleft()
            try:
                self._last_remaining_ms = remaining
                message = (self._frame.data, remaining)
                self._bus.publish(event, message)
                if self._frame.name:
                    self._bus.publish(f"{self._frame.name}/{event}", message)
            finally:
                with self._lock:
                    self._delivering = False

    # ------------------------------------------------------------------
    # Public lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Begin now if begins_at has passed, otherwise schedule the begin."""
        with self._lock:
            if self._started or self._begin_timer is not None:
                return
            now = self._clock.now_ms()
            if self._frame.begins_at > now:
                delay = self._frame.begins_at - now
                self.logger.debug(f"Frame {self.name or 'unnamed'} begins in {delay:.0f}ms")
                self._begin_timer = self._clock.call_later(delay, self._begin)
                return
        self._begin()

    def pause(self):
        """Stop ticking until resume(). Begin/end are unaffected."""
        with self._lock:
            if self._paused:
                return
            self._paused = True
            self._cancel_tick()
            self.logger.debug(f"Frame {self.name or 'unnamed'} muted")
            self._publish('muted')
        self._flush()

    def resume(self):
        """Resume ticking with an immediate tick."""
        with self._lock:
            if not self._paused:
                return
            self._paused = False
            self.logger.debug(f"Frame {self.name or 'unnamed'} unmuted")
            self._publish('unmuted')
            if self._started and not self._ended and self._frame.tick_interval > 0:
                self._tick()
        self._flush()

    mute = pause
    unmute = resume

    def end(self):
        """
        End the frame now. Normally called by the end timer.

        No-op if the frame has already ended or has not begun yet.
        """
        with self._lock:
            if self._ended:
                return
            if not self._started:
                self.logger.debug(f"Frame {self.name or 'unnamed'} has not begun, ignoring end()")
                return
            self._ended = True
            self._clock.cancel(self._end_timer)
            self._end_timer = None
            self._cancel_tick()

            self.logger.info(f"Ending frame {self.name or 'unnamed'}")
            self._publish('ended')
        self._flush()

    # ------------------------------------------------------------------
    # Transitions (state changes under the lock, delivery after it)
    # ------------------------------------------------------------------

    def _begin(self):
        with self._lock:
            if self._started:
                return
            self._started = True
            self._begin_timer = None

            self.logger.info(f"Starting frame {self.name or 'unnamed'}")
            self._publish('began')

            if self._frame.tick_interval > 0:
                self._tick()

            if self._frame.is_bounded:
                delay = self._frame.ends_at - self._clock.now_ms()
                self._end_timer = self._clock.call_later(delay, self.end)
        self._flush()

    def _cancel_tick(self):
        self._tick_generation += 1
        self._clock.cancel(self._tick_timer)
        self._tick_timer = None

    def _on_tick_timer(self, generation: int, deadline: Number):
        with self._lock:
            if generation != self._tick_generation:
                return
            self._tick_timer = None
            self._lateness_ms.append(self._clock.now_ms() - deadline)
            self._tick()
        self._flush()

    def _tick(self):
        """Queue a tick and schedule the next one. Called with the lock held."""
        if not self._started or self._ended or self._paused:
            return

        self._tick_count += 1
        self._publish('ticked')

        interval = self._frame.tick_interval
        now = self._clock.now_ms()
        fire_at = next_tick(now, interval, self._frame.sync_ticks)
        if fire_at <= now:
            # Basis larger than the interval: wait for the next boundary
            basis = sync_basis(interval, self._frame.sync_ticks)
            fire_at = now + basis - (now % basis)

        self._cancel_tick()
        self._tick_timer = self._clock.call_later(
            fire_at - now,
            functools.partial(self._on_tick_timer, self._tick_generation, fire_at)
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def tick_stats(self) -> Dict[str, Number]:
        """Summary of how late ticks fired relative to their deadlines."""
        samples = np.fromiter(self._lateness_ms, dtype=float)
        if samples.size == 0:
            return {'count': 0, 'mean_ms': 0.0, 'std_ms': 0.0, 'max_ms': 0.0}
        return {
            'count': int(samples.size),
            'mean_ms': float(np.mean(samples)),
            'std_ms': float(np.std(samples)),
            'max_ms': float(np.max(samples)),
        }

    def status(self) -> Dict[str, Any]:
        """Runtime status for monitoring."""
        return {
            'name': self.name,
            'state': self.state.value,
            'paused': self._paused,
            'tick_count': self._tick_count,
            'remaining_ms': self.remaining_ms(),
            'tick_lateness': self.tick_stats(),
        }

    def to_dict(self) -> dict:
        return self._frame.to_dict()

    def to_json(self) -> str:
        return self._frame.to_json()

    def __repr__(self) -> str:
        return f"TimeFrame(name={self.name!r}, state={self.state.value}, paused={self._paused})"
