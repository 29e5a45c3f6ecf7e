"""
Scheduler - owns a set of time frames built from one normalization pass.

    Scheduler(times, frames)
        │
        ├── normalize(times, frames)      all begins, then all ends
        ├── TimeFrame × N                 each drives its own timers
        └── EventBus                      relays frame events

Frame events are relayed onto the scheduler's bus under a generic channel
and, for named frames, a per-name channel, with the frame as the only
argument:

    began   -> frameStarted,  frameStarted/<name>
    ticked  -> frameTicked,   frameTicked/<name>
    ended   -> frameEnded,    frameEnded/<name>
    muted   -> frameMuted,    frameMuted/<name>
    unmuted -> frameUnmuted,  frameUnmuted/<name>

Subscribers that need the (data, remaining_ms) pair read frame.data and
frame.last_remaining_ms.
"""

import logging
from collections import Counter
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from ..errors import DuplicateNameError, MissingParameterError
from ..timing.resolver import MomentTable, normalize, normalize_moments
from .clock import Clock, SystemClock
from .event_bus import EventBus, Subscription
from .time_frame import TimeFrame

RELAY_CHANNELS = {
    'began': 'frameStarted',
    'ticked': 'frameTicked',
    'ended': 'frameEnded',
    'muted': 'frameMuted',
    'unmuted': 'frameUnmuted',
}


class Scheduler:
    """
    Facade over a fixed set of TimeFrames.

    Usage:
        scheduler = Scheduler(
            times={'launch': datetime(2026, 10, 20, 12, tzinfo=timezone.utc)},
            frames=[
                {'name': 'countdown', 'related_to': 'launch', 'interval': 'T1S',
                 'end': {'at': 'launch'}},
                {'name': 'liftoff', 'begin': {'at': 'launch'}},
            ],
        )
        scheduler.subscribe('frameTicked/countdown',
                            lambda frame: print(frame.last_remaining_ms))
    """

    def __init__(
        self,
        times: Optional[Mapping[str, Any]] = None,
        frames: Optional[Iterable[Mapping]] = None,
        auto_start: bool = True,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the scheduler.

        Args:
            times: Named times (epoch ms, datetime, date or ISO-8601 string)
            frames: Frame specifications
            auto_start: Start all frames immediately
            clock: Time source and timer facility (default: SystemClock)
            logger: Diagnostic sink shared with the frames

        Raises:
            DuplicateNameError: if two frames share a non-empty name
            ParseError: if a duration string is malformed
        """
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.clock = clock if clock is not None else SystemClock()
        self._bus = EventBus(self.logger)

        self._moments: MomentTable = normalize_moments(times)
        resolved = normalize(self._moments, list(frames or []))

        names = Counter(frame.name for frame in resolved if frame.name)
        duplicates = [name for name, count in names.items() if count > 1]
        if duplicates:
            raise DuplicateNameError(duplicates)

        self._frames: List[TimeFrame] = []
        for frame_spec in resolved:
            frame = TimeFrame(frame_spec, clock=self.clock, logger=self.logger)
            self._wire(frame)
            self._frames.append(frame)

        self.logger.info(
            f"Scheduler created with {len(self._frames)} frames "
            f"and {len(self._moments)} named times"
        )

        if auto_start:
            self.start()

    def _wire(self, frame: TimeFrame):
        """Relay a frame's lifecycle events onto the scheduler bus."""
        for event, channel in RELAY_CHANNELS.items():
            frame.subscribe(event, self._relay(frame, channel))

    def _relay(self, frame: TimeFrame, channel: str) -> Callable:
        def relay(data, remaining_ms):
            self._bus.publish(channel, (frame,))
            if frame.name:
                self._bus.publish(f"{channel}/{frame.name}", (frame,))
        return relay

    # ------------------------------------------------------------------
    # Aggregate operations
    # ------------------------------------------------------------------

    def start(self) -> "Scheduler":
        """Start (or schedule to start) every frame."""
        for frame in self._frames:
            frame.start()
        return self

    def pause(self) -> "Scheduler":
        """Pause ticking on every frame; begin/end still fire."""
        for frame in self._frames:
            frame.pause()
        return self

    def resume(self) -> "Scheduler":
        """Resume every paused frame."""
        for frame in self._frames:
            frame.resume()
        return self

    mute = pause
    unmute = resume

    # ------------------------------------------------------------------
    # Pub/sub
    # ------------------------------------------------------------------

    def subscribe(self, channel: str, fn: Callable) -> Subscription:
        return self._bus.subscribe(channel, fn)

    def unsubscribe(self, handle: Subscription) -> "Scheduler":
        self._bus.unsubscribe(handle)
        return self

    def publish(self, channel: str, args: Any = (), scope: Any = None) -> "Scheduler":
        self._bus.publish(channel, args, scope)
        return self

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def frames(self) -> List[TimeFrame]:
        """Copy of the frame list in construction order."""
        return list(self._frames)

    @property
    def moments(self) -> MomentTable:
        return self._moments

    def get_frame(self, name: str) -> Optional[TimeFrame]:
        """
        Find a frame by name.

        Raises:
            MissingParameterError: if name is empty
        """
        if not name:
            raise MissingParameterError("No frame name was provided")
        for frame in self._frames:
            if frame.name == name:
                return frame
        return None

    @property
    def is_finished(self) -> bool:
        """True once every frame has ended (unbounded frames never do)."""
        return all(frame.is_ended for frame in self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[TimeFrame]:
        return iter(list(self._frames))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        """Aggregate runtime status, used by the health endpoint."""
        frames = [frame.status() for frame in self._frames]
        states = Counter(f['state'] for f in frames)
        return {
            'now_ms': self.clock.now_ms(),
            'frames_total': len(frames),
            'frames_pending': states.get('PENDING', 0),
            'frames_started': states.get('STARTED', 0),
            'frames_ended': states.get('ENDED', 0),
            'frames_paused': sum(1 for f in frames if f['paused']),
            'named_times': dict(self._moments),
            'frames': frames,
        }

    def to_dict(self) -> dict:
        return {'frames': [frame.to_dict() for frame in self._frames]}
