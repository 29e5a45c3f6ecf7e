"""
Frame Data Models

ResolvedFrame is the contract between the time resolver and the time-frame
state machine: every boundary is an absolute epoch-millisecond value.

The plain-data snapshot produced by to_dict() is what a frame exposes to
JSON consumers (status endpoint, preview output):

    {
        "name": "countdown",
        "begins_at": 1760000000000,
        "ends_at": null,            # unbounded
        "tick_interval": 1000,
        "sync_ticks": true,
        "related_time": 1760003600000,
        "data": {...}
    }
"""

from dataclasses import dataclass
from typing import Any, Optional, Union
import json
import math

Number = Union[int, float]


@dataclass(frozen=True)
class ResolvedFrame:
    """
    A frame after normalization.

    ends_at is math.inf for an unbounded frame; tick_interval == 0 means the
    frame only fires began/ended.
    """
    name: Optional[str] = None
    begins_at: Number = 0
    ends_at: Number = math.inf
    tick_interval: Number = 0            # ms between ticks, 0 = no ticks
    sync_ticks: Union[bool, Number] = True  # True = align to interval, N = align to N ms
    related_to: Optional[Number] = None  # moment that remaining_ms counts towards
    data: Any = None

    @property
    def is_bounded(self) -> bool:
        return not math.isinf(self.ends_at)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "begins_at": self.begins_at,
            "ends_at": self.ends_at if self.is_bounded else None,
            "tick_interval": self.tick_interval,
            "sync_ticks": self.sync_ticks,
            "related_time": self.related_to,
            "data": self.data,
        }

    def to_json(self) -> str:
        """Serialize the snapshot to JSON."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    @classmethod
    def from_dict(cls, data: dict) -> "ResolvedFrame":
        """Rebuild a ResolvedFrame from a to_dict() snapshot."""
        ends_at = data.get("ends_at")
        return cls(
            name=data.get("name"),
            begins_at=data.get("begins_at", 0),
            ends_at=math.inf if ends_at is None else ends_at,
            tick_interval=data.get("tick_interval", 0),
            sync_ticks=data.get("sync_ticks", True),
            related_to=data.get("related_time"),
            data=data.get("data"),
        )

    @classmethod
    def from_json(cls, json_str: str) -> "ResolvedFrame":
        """Deserialize from JSON."""
        return cls.from_dict(json.loads(json_str))
