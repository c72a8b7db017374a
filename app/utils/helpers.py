"""Shared utility functions.

parse_date:        lenient date parsing (returns None on bad input)
parse_datetime:    same, but keeps/produces a datetime at midnight
add_working_days:  calendar arithmetic that skips Saturdays and Sundays
"""
import logging
from datetime import date, datetime, timedelta

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS[Z] (datetime ISO → .date())
    - DD/MM/YYYY and DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    for fmt in ("%d/%m/%Y", "%d.%m.%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except (ValueError, TypeError):
            continue
    return None


def parse_datetime(value):
    """Parse into a naive datetime; bare dates become midnight. None on bad input."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if not isinstance(value, date):
        try:
            return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00")).replace(tzinfo=None)
        except (ValueError, TypeError):
            pass
    d = parse_date(value)
    return datetime(d.year, d.month, d.day) if d else None


def is_weekend(d):
    return d.weekday() >= 5


def add_working_days(start, days):
    """Return the date ``days`` working days after ``start``.

    ``start`` itself is not counted; each step moves forward one calendar
    day and only weekdays decrement the counter.
    """
    current = start
    remaining = days
    while remaining > 0:
        current = current + timedelta(days=1)
        if not is_weekend(current):
            remaining -= 1
    return current


def next_working_day(d):
    """``d`` itself when it is a weekday, otherwise the following Monday."""
    while is_weekend(d):
        d = d + timedelta(days=1)
    return d
