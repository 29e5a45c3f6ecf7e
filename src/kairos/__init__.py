"""
kairos: Time Frame Scheduler

Schedules named time frames (begin moment, end moment, optional recurring
tick) and publishes their lifecycle events to subscribers.

Architecture:
    {times, frames} → resolver (named moments, durations, defaults)
                    → Scheduler → TimeFrame × N → EventBus → subscribers

Boundaries may be absolute, relative to named moments, offset by a duration
("PT5M"), or interpolated between two moments ("50%"). Ticks can be aligned
to wall-clock boundaries so that a one-minute tick fires exactly on the
minute.

Version: 0.3.0
"""

import logging

__version__ = "0.3.0"

from .errors import (
    KairosError,
    ParseError,
    DuplicateNameError,
    MissingParameterError,
    AccessDeniedError,
)
from .timing.duration import parse_duration
from .timing.resolver import normalize, MomentTable
from .interfaces.frame_snapshot import ResolvedFrame
from .engine.clock import Clock, SystemClock, ManualClock
from .engine.event_bus import EventBus
from .engine.time_frame import TimeFrame, FrameState
from .engine.scheduler import Scheduler

# Library logging stays silent unless the application configures it
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Scheduler",
    "TimeFrame",
    "FrameState",
    "EventBus",
    "Clock",
    "SystemClock",
    "ManualClock",
    "ResolvedFrame",
    "MomentTable",
    "normalize",
    "parse_duration",
    "KairosError",
    "ParseError",
    "DuplicateNameError",
    "MissingParameterError",
    "AccessDeniedError",
    "__version__",
]
