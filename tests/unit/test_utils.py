"""
Unit tests for the date, money and id helpers.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from booking_sync.utils.datetime import (
    each_day,
    each_night,
    js_weekday,
    nights_between,
    ranges_overlap,
)
from booking_sync.utils.ids import is_provisional, provisional_id
from booking_sync.utils.money import to_money


@pytest.mark.unit
def test_nights_between_dates_and_datetimes() -> None:
    """Test that whole dates count exactly and partial days round up."""
    assert nights_between(date(2026, 3, 1), date(2026, 3, 4)) == 3
    assert nights_between(date(2026, 3, 1), date(2026, 3, 1)) == 0
    assert nights_between(datetime(2026, 3, 1, 15), datetime(2026, 3, 3, 11)) == 2
    assert nights_between(datetime(2026, 3, 1, 10), datetime(2026, 3, 3, 11)) == 3


@pytest.mark.unit
def test_each_night_excludes_checkout() -> None:
    """Test that the checkout day is not an occupied night."""
    assert list(each_night(date(2026, 3, 30), date(2026, 4, 2))) == [
        date(2026, 3, 30),
        date(2026, 3, 31),
        date(2026, 4, 1),
    ]
    assert list(each_day(date(2026, 3, 30), date(2026, 3, 31))) == [
        date(2026, 3, 30),
        date(2026, 3, 31),
    ]


@pytest.mark.unit
@pytest.mark.parametrize(
    "a,b,expected",
    [
        ((1, 5), (5, 8), False),
        ((5, 8), (1, 5), False),
        ((1, 5), (4, 8), True),
        ((2, 3), (1, 8), True),
        ((1, 8), (2, 3), True),
    ],
)
def test_ranges_overlap_is_half_open(
    a: tuple[int, int], b: tuple[int, int], expected: bool
) -> None:
    """Test that back-to-back stays do not overlap."""

    def day(n: int) -> date:
        return date(2026, 3, n)

    assert ranges_overlap(day(a[0]), day(a[1]), day(b[0]), day(b[1])) is expected


@pytest.mark.unit
def test_js_weekday_starts_on_sunday() -> None:
    """Test that weekday numbering is 0=Sunday .. 6=Saturday."""
    assert js_weekday(date(2026, 3, 1)) == 0  # Sunday
    assert js_weekday(date(2026, 3, 2)) == 1
    assert js_weekday(date(2026, 3, 7)) == 6


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,expected",
    [
        (0.1 + 0.2, Decimal("0.30")),
        ("12.345", Decimal("12.35")),
        (Decimal("2.675"), Decimal("2.68")),
        (None, Decimal("0.00")),
        ("", Decimal("0.00")),
        (7, Decimal("7.00")),
    ],
)
def test_to_money(value: object, expected: Decimal) -> None:
    """Test that amounts are coerced to cents with half-up rounding."""
    assert to_money(value) == expected


@pytest.mark.unit
def test_to_money_rejects_garbage() -> None:
    """Test that a non-numeric string is a ValueError, not a silent zero."""
    with pytest.raises(ValueError):
        to_money("twelve")


@pytest.mark.unit
def test_provisional_ids() -> None:
    """Test that import and iCal ids are provisional and CRM ids are not."""
    assert is_provisional(provisional_id("import-", "5123"))
    assert is_provisional("ical-abc@airbnb.com")
    assert not is_provisional("4410000001")
    assert not is_provisional(None)
