"""
Time Resolver

Turns declarative frame descriptions into absolute millisecond timestamps.

A frame boundary (begin or end) is a number, a datetime/date, or a dict:

    {"at": "launch"}                                   -> launch
    {"starting": "T5M", "before": "launch"}            -> launch - 5 min
    {"starting": 1000, "after": "launch"}              -> launch + 1 s
    {"interpolated": "50%", "between": "a", "and": "b"} -> midpoint of a and b

Strings inside `at`, `after`, `before`, `between` and `and` are looked up in
the named moment table. A reference to an unknown moment resolves to None and
the precedence chain skips it, so the boundary falls back to its default.

normalize() runs two passes over the frame list: every begin is resolved
first, then every end, because a frame without an explicit end ends when the
following frame begins.
"""

import logging
import math
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from ..errors import AccessDeniedError
from ..interfaces.frame_snapshot import ResolvedFrame
from .duration import to_milliseconds

logger = logging.getLogger(__name__)

Number = Union[int, float]

BOUNDARY_KEYS = ('at', 'starting', 'after', 'before', 'interpolated', 'between', 'and')
MOMENT_KEYS = ('at', 'after', 'before', 'between', 'and')


def is_number(value: Any) -> bool:
    """True for int/float values, excluding bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_epoch_ms(value: Any) -> Optional[Number]:
    """
    Convert a date-like value to epoch milliseconds.

    Naive datetimes are interpreted in local time, dates at UTC midnight.
    ISO-8601 strings (with an optional trailing "Z") are parsed.
    Numbers are returned unchanged. Anything else yields None.
    """
    if is_number(value):
        return value
    if isinstance(value, datetime):
        return value.timestamp() * 1000
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp() * 1000
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            return datetime.fromisoformat(text).timestamp() * 1000
        except ValueError:
            return None
    return None


class MomentTable(Mapping):
    """
    Read-only table of named moments in epoch milliseconds.

    Built once per scheduling pass. Frames may read it concurrently.
    """

    def __init__(self, moments: Optional[Dict[str, Number]] = None):
        object.__setattr__(self, '_moments', dict(moments or {}))

    def __getitem__(self, name: str) -> Number:
        return self._moments[name]

    def __iter__(self):
        return iter(self._moments)

    def __len__(self) -> int:
        return len(self._moments)

    def __setitem__(self, name, value):
        raise AccessDeniedError(f"Named moment table is read-only (tried to set {name!r})")

    def __delitem__(self, name):
        raise AccessDeniedError(f"Named moment table is read-only (tried to delete {name!r})")

    def __setattr__(self, name, value):
        raise AccessDeniedError("Named moment table is read-only")

    def __repr__(self) -> str:
        return f"MomentTable({self._moments!r})"


def normalize_moments(times: Optional[Dict[str, Any]]) -> MomentTable:
    """
    Normalize caller-supplied named times to epoch milliseconds.

    Args:
        times: Mapping of moment name to a number (ms), datetime, date or
            ISO-8601 string

    Returns:
        MomentTable with every resolvable moment
    """
    moments: Dict[str, Number] = {}
    for name, value in (times or {}).items():
        ms = to_epoch_ms(value)
        if ms is None:
            logger.warning(f"Named time {name!r} is not a timestamp or date: {value!r}")
            continue
        moments[name] = ms
    return MomentTable(moments)


def resolve_timestamp(value: Any, moments: Mapping) -> Optional[Number]:
    """
    Resolve a single boundary reference.

    Strings are moment names, datetimes/dates are converted, numbers pass
    through. Unknown names resolve to None.
    """
    if value is None or is_number(value):
        return value
    if isinstance(value, str):
        if value not in moments:
            logger.debug(f"Unknown named time {value!r}")
        return moments.get(value)
    if isinstance(value, (datetime, date)):
        return to_epoch_ms(value)
    return None


def _resolve_fraction(value: Any) -> Optional[float]:
    """Interpolation fraction: 0.25 stays 0.25, "25%" becomes 0.25."""
    if is_number(value):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip().rstrip('%')) / 100
        except ValueError:
            logger.debug(f"Unparseable interpolation {value!r}")
    return None


def resolve_boundary(boundary: Any, moments: Mapping, default: Number) -> Number:
    """
    Resolve a begin/end description to an absolute timestamp.

    Precedence, first match wins:
        1. boundary is a number, datetime or date
        2. at
        3. before - starting
        4. after + starting
        5. between + (and - between) * interpolated
        6. default

    Args:
        boundary: Number or dict using the keys in BOUNDARY_KEYS
        moments: Named moment table
        default: Value used when nothing else resolves

    Returns:
        Timestamp in milliseconds (may be math.inf when default is)

    Raises:
        ParseError: if `starting` is a malformed duration string
    """
    if is_number(boundary):
        return boundary
    if isinstance(boundary, (datetime, date)):
        return to_epoch_ms(boundary)
    if boundary is None:
        return default
    if not isinstance(boundary, Mapping):
        logger.warning(f"Ignoring unsupported boundary {boundary!r}, using default")
        return default

    unknown = set(boundary) - set(BOUNDARY_KEYS)
    if unknown:
        logger.warning(f"Ignoring unknown boundary keys: {sorted(unknown)}")

    refs = {key: resolve_timestamp(boundary.get(key), moments) for key in MOMENT_KEYS}
    starting = to_milliseconds(boundary.get('starting'))
    interpolated = _resolve_fraction(boundary.get('interpolated'))

    if is_number(refs['at']):
        return refs['at']

    if is_number(starting):
        if is_number(refs['before']):
            return refs['before'] - starting
        if is_number(refs['after']):
            return refs['after'] + starting

    if is_number(interpolated) and is_number(refs['between']) and is_number(refs['and']):
        return refs['between'] + (refs['and'] - refs['between']) * interpolated

    return default


def _frame_field(frame: Mapping, *names: str, default: Any = None) -> Any:
    for name in names:
        if name in frame:
            return frame[name]
    return default


def normalize(times: Optional[Dict[str, Any]], frames: Iterable[Mapping]) -> List[ResolvedFrame]:
    """
    Resolve a whole frame set against shared named times.

    Pure and order-preserving; the input dicts are not modified.

    Args:
        times: Named times (see normalize_moments)
        frames: Frame specifications

    Returns:
        One ResolvedFrame per input frame, in input order
    """
    moments = times if isinstance(times, MomentTable) else normalize_moments(times)
    specs = [dict(frame or {}) for frame in frames or []]

    # Pass 1: begins
    begins: List[Number] = []
    for spec in specs:
        begins.append(resolve_boundary(spec.get('begin', {}), moments, 0))

    # Pass 2: ends, defaulting to the next frame's begin
    resolved: List[ResolvedFrame] = []
    for i, spec in enumerate(specs):
        begins_at = begins[i]
        default_end = begins[i + 1] if i + 1 < len(begins) else math.inf
        if default_end <= begins_at:
            default_end = math.inf

        ends_at = resolve_boundary(spec.get('end', {}), moments, default_end)
        name = spec.get('name') or None

        if ends_at < begins_at:
            logger.warning(
                f"Frame {name or i} ends ({ends_at}) before it begins ({begins_at})"
            )

        related_to = resolve_timestamp(
            _frame_field(spec, 'related_to', 'relatedTo'), moments
        )
        interval = to_milliseconds(spec.get('interval')) or 0
        sync = spec.get('sync', True)

        resolved.append(ResolvedFrame(
            name=name,
            begins_at=begins_at,
            ends_at=ends_at,
            tick_interval=interval,
            sync_ticks=sync,
            related_to=related_to,
            data=spec.get('data'),
        ))

    logger.debug(f"Normalized {len(resolved)} frames against {len(moments)} named times")
    return resolved
