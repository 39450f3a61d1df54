"""Parsing of "ago" expressions such as "1d", "3d12h" or "90m"."""

import re
from datetime import datetime, timedelta

from ..exceptions import ParseError
from ..utils.timestamps import utc_now

_DAYS_PATTERN = re.compile(r"^(\d+)d(.*)$")
_SEGMENT_PATTERN = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

# Microseconds per unit; segments are summed before building the timedelta
_UNITS = {
    "ns": 0.001,
    "us": 1,
    "µs": 1,
    "μs": 1,
    "ms": 1_000,
    "s": 1_000_000,
    "m": 60_000_000,
    "h": 3_600_000_000,
}


def parse_duration(value: str) -> timedelta:
    """Parse a duration made of ``<number><unit>`` segments, e.g. "1h30m".

    Raises:
        ParseError: If the value is not a valid duration
    """
    if value == "0":
        return timedelta(0)
    if not value:
        raise ParseError("Empty duration")

    microseconds = 0.0
    position = 0
    while position < len(value):
        match = _SEGMENT_PATTERN.match(value, position)
        if match is None:
            raise ParseError(f"Invalid duration: {value!r}")
        number, unit = match.groups()
        microseconds += _UNITS[unit] * float(number)
        position = match.end()
    return timedelta(microseconds=microseconds)


def parse_ago(ago: str) -> timedelta:
    """Convert an age expression into the offset to add to "now".

    The expression is an optional day count (``<N>d``) followed by an
    optional sub-day duration. Without a ``d`` token the whole string is
    a duration and the day count is zero.

    Args:
        ago: Age expression, e.g. "1d", "3d12h", "12h"

    Returns:
        timedelta: Non-positive offset (``-(days*24h + duration)``)

    Raises:
        ParseError: If the expression matches neither form

    Examples:
        parse_ago("1d")     # -1 day
        parse_ago("3d12h")  # -84 hours
        parse_ago("12h")    # -12 hours
    """
    if not isinstance(ago, str):
        raise ParseError(f"Invalid age expression: {ago!r}")

    value = ago.strip()
    days = 0
    rest = value
    if "d" in value:
        match = _DAYS_PATTERN.match(value)
        if match is None:
            raise ParseError(f"Invalid age expression: {ago!r}")
        days = int(match.group(1))
        rest = match.group(2)
        if not rest:
            return -timedelta(hours=24 * days)

    try:
        duration = parse_duration(rest)
    except ParseError as e:
        raise ParseError(f"Invalid age expression: {ago!r}") from e
    return -(timedelta(hours=24 * days) + duration)


def cutoff_from_ago(ago: str, now: datetime | None = None) -> datetime:
    """Return the instant before which tags are considered old.

    Args:
        ago: Age expression understood by :func:`parse_ago`
        now: Reference instant, defaults to the current UTC time
    """
    offset = parse_ago(ago)
    return (now or utc_now()) + offset
