"""Calendar-day helpers.

Scheduling works on local calendar days only. Dates are stored as
``YYYY-MM-DD`` strings so they never shift across a day boundary.
"""
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

_DAY_RE = re.compile(r"^([0-9]{4})-([0-9]{2})-([0-9]{2})$")


def today() -> date:
    """Current local calendar day."""
    return date.today()


def format_day(day: date) -> str:
    return day.isoformat()


def parse_day(value: Any) -> Optional[date]:
    """Parse a stored day value, returning None for anything that is not a real calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    match = _DAY_RE.match(value.strip())
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def day_from_epoch_ms(value: Any) -> Optional[date]:
    """Convert a millisecond timestamp to the local calendar day it falls on."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value / 1000).date()
    except (OverflowError, OSError, ValueError):
        return None
