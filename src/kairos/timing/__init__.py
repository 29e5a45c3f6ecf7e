"""
Time specification handling for kairos.

Duration parsing and resolution of declarative begin/end descriptions.
"""

from .duration import parse_duration, to_milliseconds
from .resolver import normalize, normalize_moments, resolve_boundary, MomentTable

__all__ = [
    'parse_duration', 'to_milliseconds',
    'normalize', 'normalize_moments', 'resolve_boundary', 'MomentTable',
]
