"""Scheduling engine - clocks, event bus, time frames and the scheduler facade.

Contains:
- Scheduler: owns and starts a set of TimeFrames, relays their events
- TimeFrame: begin/tick/end state machine with clock-synchronized ticks
- EventBus: channel-keyed publish/subscribe
- SystemClock / ManualClock: timer facilities
"""

from .clock import Clock, SystemClock, ManualClock, TimerHandle
from .event_bus import EventBus, Subscription
from .time_frame import TimeFrame, FrameState, next_tick
from .scheduler import Scheduler

__all__ = [
    'Clock', 'SystemClock', 'ManualClock', 'TimerHandle',
    'EventBus', 'Subscription',
    'TimeFrame', 'FrameState', 'next_tick',
    'Scheduler',
]
