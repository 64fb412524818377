"""Date and time helpers for the half-open ``[check_in, check_out)`` calendar model."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Iterator


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def local_today() -> date:
    """Today's calendar date on the server clock (local midnight boundary)."""
    return date.today()


def nights_between(check_in: date, check_out: date) -> int:
    """
    Number of nights in ``[check_in, check_out)``.

    Whole dates give an exact day count; datetimes are rounded up to the next
    whole night so a late checkout never undercounts the stay.
    """
    delta = check_out - check_in
    return math.ceil(delta.total_seconds() / 86400)


def each_night(check_in: date, check_out: date) -> Iterator[date]:
    """Yield every occupied night of a stay (the checkout day is excluded)."""
    night = check_in
    while night < check_out:
        yield night
        night += timedelta(days=1)


def each_day(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in the closed interval ``[start, end]``."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def js_weekday(day: date) -> int:
    """Day-of-week numbering used by the rate editor: 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open overlap test: ``a.start < b.end and a.end > b.start``."""
    return a_start < b_end and a_end > b_start
