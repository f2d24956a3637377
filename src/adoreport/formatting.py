"""Shared text formatting helpers for adoreport.

Provides functions for formatting pass rates, durations, timestamps,
branch and suite names, and truncation markers used by every report.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone, tzinfo

_MONTHS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

# Azure DevOps emits up to seven fractional digits; datetime accepts six.
_FRACTION = re.compile(r"(\.\d{6})\d+")

_BRANCH_PREFIX = "refs/heads/"


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp as emitted by Azure DevOps.

    Accepts a trailing ``Z`` and more than six fractional digits. Naive
    timestamps are taken to be UTC. Returns ``None`` for empty or
    unparseable input.
    """
    if not value:
        return None
    text = _FRACTION.sub(r"\1", value.strip())
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(moment: datetime | None, tz: tzinfo | None = None) -> str:
    """Format a timestamp as ``'Jan 5, 02:30 PM'``.

    Converts to *tz* first, or to the local time zone when *tz* is None.
    """
    if moment is None:
        return "unknown"
    local = moment.astimezone(tz)
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{_MONTHS[local.month - 1]} {local.day}, {hour:02d}:{local.minute:02d} {meridiem}"


def format_build_duration(start: datetime | None, finish: datetime | None, now: datetime) -> str:
    """Format the time between *start* and *finish* (or *now*).

    Returns ``'1h 12m'`` above an hour, otherwise ``'4m 37s'``.
    """
    if start is None:
        return "unknown"
    end = finish if finish is not None else now
    elapsed_ms = int((end - start).total_seconds() * 1000)
    minutes = elapsed_ms // 60000
    seconds = (elapsed_ms % 60000) // 1000
    if minutes > 60:
        return f"{minutes // 60}h {minutes % 60}m"
    return f"{minutes}m {seconds}s"


def format_pass_rate(passed: int, total: int, *, empty: str = "0.0") -> str:
    """Format ``passed / total`` as a percentage with one decimal, no sign.

    Returns *empty* if *total* is 0.
    """
    if total == 0:
        return empty
    return f"{passed / total * 100:.1f}"


def short_branch(name: str) -> str:
    """Strip the ``refs/heads/`` prefix from a branch ref."""
    return name.replace(_BRANCH_PREFIX, "", 1)


def short_suite(name: str, prefix: str = "testSuite") -> str:
    """Drop the first occurrence of *prefix* from a suite name."""
    if not prefix:
        return name
    return name.replace(prefix, "", 1)


def pluralize(count: int, word: str) -> str:
    """Return *word* with an ``s`` appended unless *count* is 1."""
    return word if count == 1 else f"{word}s"


def format_remaining(shown: int, total: int, indent: str = "   ") -> str | None:
    """Return the ``'... and N more'`` marker, or None if nothing was cut."""
    if total <= shown:
        return None
    return f"{indent}... and {total - shown} more"


def banner(char: str = "=", width: int = 70) -> str:
    """Return a horizontal rule of *width* copies of *char*."""
    return char * width
