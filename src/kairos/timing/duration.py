"""
Duration Parser

Converts compact ISO-8601-like duration strings into milliseconds.

Grammar (case-insensitive, every group optional, whitespace allowed
between groups):

    P? (nY)? (nM)? (nD)? T? (nH)? (nM)? (nS)?

The first M is months, the M after the hours group is minutes. A bare
"5M" therefore means five months; write "T5M" for five minutes.

Calendar units are fixed approximations:
    year = 365 days, month = 30 days

Examples:
    parse_duration("P1Y2M3D")  -> 36_979_200_000
    parse_duration("T5M")      -> 300_000
    parse_duration("PT1H30M")  -> 5_400_000
    parse_duration("")         -> 0
"""

import re
from typing import Optional, Union

from ..errors import ParseError

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

# Order matches the capture groups of DURATION_PATTERN
DURATION_MULTIPLIERS = (
    365 * MS_PER_DAY,   # years
    30 * MS_PER_DAY,    # months
    MS_PER_DAY,         # days
    MS_PER_HOUR,        # hours
    MS_PER_MINUTE,      # minutes
    MS_PER_SECOND,      # seconds
)

DURATION_PATTERN = re.compile(
    r"""
    ^\s*P?\s*
    (?:(\d+)Y)?\s*      # years
    (?:(\d+)M)?\s*      # months
    (?:(\d+)D)?\s*      # days
    T?\s*
    (?:(\d+)H)?\s*      # hours
    (?:(\d+)M)?\s*      # minutes
    (?:(\d+)S)?\s*      # seconds
    $
    """,
    re.IGNORECASE | re.VERBOSE,
)


def parse_duration(text: str) -> int:
    """
    Parse a duration string into milliseconds.

    Missing groups contribute nothing, so a string that matches the grammar
    without any group (e.g. "", "P", "PT") yields 0.

    Args:
        text: Duration string, e.g. "P1DT12H" or "T30S"

    Returns:
        Duration in milliseconds

    Raises:
        ParseError: if text is not a string or does not match the grammar
    """
    if not isinstance(text, str):
        raise ParseError(text, f"Duration must be a string, got {type(text).__name__}")

    match = DURATION_PATTERN.match(text)
    if match is None:
        raise ParseError(text)

    return sum(
        int(group) * multiplier
        for group, multiplier in zip(match.groups(), DURATION_MULTIPLIERS)
        if group
    )


def to_milliseconds(value: Union[str, int, float, None]) -> Optional[Union[int, float]]:
    """
    Normalize a duration given either as a string or as milliseconds.

    Numbers are returned unchanged, strings go through parse_duration,
    None stays None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return parse_duration(value)
    if isinstance(value, (int, float)):
        return value
    raise ParseError(value, f"Unsupported duration type: {type(value).__name__}")
