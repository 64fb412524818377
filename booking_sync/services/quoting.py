"""Availability quotes: which rooms can take a stay, and at what price."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection

from booking_sync.config import CURRENCY
from booking_sync.db.readers.bookings import list_occupied_room_ids
from booking_sync.db.readers.price_rules import list_price_rules
from booking_sync.db.readers.rooms import list_rooms
from booking_sync.utils.datetime import each_night, nights_between
from booking_sync.utils.money import ZERO, to_money

logger = structlog.get_logger(__name__)


@dataclass
class RoomQuote:
    room: dict[str, Any]
    nights: int
    total_price: Decimal
    average_per_night: Decimal
    currency: str = CURRENCY
    nightly_breakdown: list[tuple[date, Decimal]] = field(default_factory=list)

    def pricing(self) -> dict[str, Any]:
        """Pricing block of the public availability response."""
        return {
            "nights": self.nights,
            "totalPrice": float(self.total_price),
            "averagePerNight": float(self.average_per_night),
            "currency": self.currency,
            "nightlyBreakdown": [
                {"date": night.isoformat(), "price": float(price)}
                for night, price in self.nightly_breakdown
            ],
        }


def price_stay(
    room: dict[str, Any],
    check_in: date,
    check_out: date,
    rules: dict[date, dict[str, Any]],
    currency: str = CURRENCY,
) -> Optional[RoomQuote]:
    """
    Price one room for ``[check_in, check_out)`` against its date rules.

    Returns None when the stay is shorter than the room's minimum, when any
    night is closed, or when any night's min-stay override is longer than
    the stay. A rule without a price falls back to the room's base price.
    """
    nights = nights_between(check_in, check_out)
    if nights < 1 or nights < room["min_nights"]:
        return None

    breakdown: list[tuple[date, Decimal]] = []
    total = ZERO
    for night in each_night(check_in, check_out):
        rule = rules.get(night)
        if rule is not None:
            if not rule["is_available"]:
                return None
            if rule["min_stay"] and nights < rule["min_stay"]:
                return None
        price = to_money(rule["price"] if rule and rule["price"] is not None else room["base_price"])
        breakdown.append((night, price))
        total += price

    return RoomQuote(
        room=room,
        nights=nights,
        total_price=to_money(total),
        average_per_night=to_money(total / nights),
        currency=currency,
        nightly_breakdown=breakdown,
    )


def quote_availability(
    conn: Connection,
    check_in: date,
    check_out: date,
    property_id: Optional[str] = None,
) -> list[RoomQuote]:
    """
    List bookable rooms with their price for a stay, ordered by room id.

    A room with any non-cancelled booking overlapping the stay is left out
    entirely; partial availability is never offered.

    Args:
        conn: Active database connection
        check_in: First night
        check_out: Checkout day (not occupied)
        property_id: Restrict to one property

    Returns:
        list[RoomQuote]: One quote per available room
    """
    rooms = list_rooms(conn, property_id)
    occupied = list_occupied_room_ids(conn, check_in, check_out)
    candidates = [room for room in rooms if room["id"] not in occupied]
    rules = list_price_rules(conn, check_in, check_out, [room["id"] for room in candidates])

    quotes = []
    for room in candidates:
        quote = price_stay(room, check_in, check_out, rules.get(room["id"], {}))
        if quote is not None:
            quotes.append(quote)

    logger.debug(
        "availability_quoted",
        check_in=check_in.isoformat(),
        check_out=check_out.isoformat(),
        property_id=property_id,
        rooms_total=len(rooms),
        rooms_available=len(quotes),
    )
    return quotes
