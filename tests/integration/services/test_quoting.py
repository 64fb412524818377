"""
Integration tests for availability quotes (services/quoting.py).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Callable

import pytest
from sqlalchemy.engine import Engine

from booking_sync.db.writers.price_rules import upsert_price_rules
from booking_sync.services.bookings import create_direct_booking
from booking_sync.services.quoting import quote_availability
from booking_sync.services.repository import SyncingRepository

CHECK_IN = date(2026, 11, 10)
CHECK_OUT = date(2026, 11, 13)


def _room_ids(engine: Engine, check_in: date = CHECK_IN, check_out: date = CHECK_OUT, **kw: Any) -> list[str]:
    with engine.connect() as conn:
        return [q.room["id"] for q in quote_availability(conn, check_in, check_out, **kw)]


@pytest.mark.integration
def test_quotes_every_free_room_in_id_order(
    db_engine: Engine, make_room: Callable[..., Any]
) -> None:
    """Test that free rooms are all offered, ordered by room id."""
    make_room(id="room-b")
    make_room(id="room-a")

    assert _room_ids(db_engine) == ["room-a", "room-b"]


@pytest.mark.integration
def test_closed_day_excludes_the_room(db_engine: Engine, make_room: Callable[..., Any]) -> None:
    """Test that one night closed by a price rule takes the whole room off the quote."""
    closed = make_room()
    open_room = make_room()
    with db_engine.begin() as conn:
        upsert_price_rules(conn, closed["id"], [date(2026, 11, 11)], Decimal("180"), is_available=False)

    assert _room_ids(db_engine) == [open_room["id"]]


@pytest.mark.integration
def test_rule_on_checkout_day_does_not_matter(
    db_engine: Engine, make_room: Callable[..., Any]
) -> None:
    """Test that a closed checkout day does not block the stay."""
    room = make_room()
    with db_engine.begin() as conn:
        upsert_price_rules(conn, room["id"], [CHECK_OUT], Decimal("180"), is_available=False)

    assert _room_ids(db_engine) == [room["id"]]


@pytest.mark.integration
def test_min_stay_override_longer_than_stay(
    db_engine: Engine, make_room: Callable[..., Any]
) -> None:
    """Test that a per-date minimum stay longer than the request rejects the room."""
    room = make_room()
    with db_engine.begin() as conn:
        upsert_price_rules(conn, room["id"], [CHECK_IN], Decimal("200"), min_stay=5)

    assert _room_ids(db_engine) == []
    assert _room_ids(db_engine, CHECK_IN, date(2026, 11, 15)) == [room["id"]]


@pytest.mark.integration
def test_room_min_nights(db_engine: Engine, make_room: Callable[..., Any]) -> None:
    make_room(min_nights=4)

    assert _room_ids(db_engine) == []


@pytest.mark.integration
def test_prices_mix_overrides_and_base_price(
    db_engine: Engine, make_room: Callable[..., Any]
) -> None:
    """Test the nightly breakdown, total and average of a quote."""
    room = make_room(base_price=Decimal("200.00"))
    with db_engine.begin() as conn:
        upsert_price_rules(conn, room["id"], [date(2026, 11, 11)], Decimal("250.50"))

    with db_engine.connect() as conn:
        (quote,) = quote_availability(conn, CHECK_IN, CHECK_OUT)

    assert quote.nightly_breakdown == [
        (date(2026, 11, 10), Decimal("200.00")),
        (date(2026, 11, 11), Decimal("250.50")),
        (date(2026, 11, 12), Decimal("200.00")),
    ]
    assert quote.total_price == Decimal("650.50")
    assert quote.average_per_night == Decimal("216.83")
    assert quote.nights == 3


@pytest.mark.integration
def test_partially_booked_room_is_not_offered(
    db_engine: Engine, make_room: Callable[..., Any], make_booking: Callable[..., Any]
) -> None:
    """Test that a room booked for any night of the stay is left out (no split stays)."""
    booked = make_room()
    free = make_room()
    make_booking(booked["id"], date(2026, 11, 12), date(2026, 11, 20))

    assert _room_ids(db_engine) == [free["id"]]


@pytest.mark.integration
def test_blocked_booking_takes_room_off_sale_cancelled_does_not(
    db_engine: Engine, make_room: Callable[..., Any], make_booking: Callable[..., Any]
) -> None:
    blocked = make_room()
    cancelled = make_room()
    make_booking(blocked["id"], CHECK_IN, CHECK_OUT, status="BLOCKED")
    make_booking(cancelled["id"], CHECK_IN, CHECK_OUT, status="CANCELLED")

    assert _room_ids(db_engine) == [cancelled["id"]]


@pytest.mark.integration
def test_scoped_to_property(
    db_engine: Engine, make_property: Callable[..., str], make_room: Callable[..., Any]
) -> None:
    villa = make_property("villa")
    make_property("lodge")
    in_villa = make_room(property_id=villa)
    make_room(property_id="lodge")

    assert _room_ids(db_engine, property_id=villa) == [in_villa["id"]]


@pytest.mark.integration
def test_booked_room_disappears_from_next_quote(
    repo: SyncingRepository, make_room: Callable[..., Any]
) -> None:
    """Test that a room is no longer offered for dates booked a moment ago."""
    room = make_room()
    assert _room_ids(repo.engine) == [room["id"]]

    create_direct_booking(
        repo,
        {
            "room_id": room["id"],
            "guest_name": "Anna Nowak",
            "check_in": CHECK_IN,
            "check_out": CHECK_OUT,
        },
    )

    assert _room_ids(repo.engine) == []
    # The morning of checkout the room is free again
    assert _room_ids(repo.engine, CHECK_OUT, date(2026, 11, 14)) == [room["id"]]
