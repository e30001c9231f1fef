"""Calendar date helpers.

Scores are keyed by the member's local calendar date. ``format_date`` reads
the year/month/day of the value it is given and never normalizes to UTC
first, so a late-evening timestamp stays on the day it was recorded.
"""

from datetime import date, datetime, timedelta

from allowance.core.errors import ValidationError


def format_date(value: date | datetime) -> str:
    """Return ``YYYY-MM-DD`` for the value's own calendar day."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_date(text: str) -> date:
    """Parse a ``YYYY-MM-DD`` string."""
    try:
        return date.fromisoformat(text)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date {text!r}, expected YYYY-MM-DD")


def to_date(value: date | datetime) -> date:
    """Drop the time part while keeping the local calendar day."""
    if isinstance(value, datetime):
        return date(value.year, value.month, value.day)
    return value


def get_date_range(start: date | datetime, end: date | datetime) -> list[date]:
    """All days from ``start`` to ``end`` inclusive, ascending.

    Returns an empty list when ``end`` is before ``start``.
    """
    current = to_date(start)
    last = to_date(end)
    days = []
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days


def day_count(start: date | datetime, end: date | datetime) -> int:
    """Number of days in the inclusive range, 0 when inverted."""
    delta = (to_date(end) - to_date(start)).days
    return delta + 1 if delta >= 0 else 0
