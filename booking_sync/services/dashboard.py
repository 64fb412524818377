"""
Dashboard timeline ("tape chart"): every room with its stays and price
overrides over a window, read from the local cache only.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.engine import Engine

from booking_sync.db.readers.bookings import list_bookings_between
from booking_sync.db.readers.price_rules import list_price_rules
from booking_sync.db.readers.rooms import list_rooms
from booking_sync.errors import ValidationError
from booking_sync.utils.datetime import each_day, local_today

LOOKBACK_DAYS = 30
LOOKAHEAD_DAYS = 150
MAX_WINDOW_DAYS = 731


def default_window(today: Optional[date] = None) -> tuple[date, date]:
    """From the 1st of the month 30 days back to the end of the month 150 days ahead."""
    today = today or local_today()
    start = (today - timedelta(days=LOOKBACK_DAYS)).replace(day=1)
    end = (today + timedelta(days=LOOKAHEAD_DAYS)).replace(day=1) + relativedelta(months=1, days=-1)
    return start, end


def _booking_entry(booking: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": booking["id"],
        "bookingRef": booking["booking_ref"],
        "guestName": booking["guest_name"],
        "guestEmail": booking["guest_email"],
        "numAdults": booking["num_adults"],
        "numChildren": booking["num_children"],
        "guestAges": booking["guest_ages"],
        "notes": booking["notes"],
        "checkIn": booking["check_in"].isoformat(),
        "checkOut": booking["check_out"].isoformat(),
        "source": booking["source"],
        "status": booking["status"],
        "totalPrice": float(booking["total_price"]),
        "externalId": booking["external_id"],
    }


def tape_chart(
    engine: Engine, start: Optional[date] = None, end: Optional[date] = None
) -> dict[str, Any]:
    """
    Rooms ordered by number, each with the stays and price overrides in ``[start, end]``.

    Raises:
        ValidationError: ``end`` before ``start`` or a window longer than two years
    """
    default_start, default_end = default_window()
    start = start or default_start
    end = end or default_end
    if end < start:
        raise ValidationError("end must not be before start")
    if (end - start).days > MAX_WINDOW_DAYS:
        raise ValidationError(f"The window is limited to {MAX_WINDOW_DAYS} days")

    with engine.connect() as conn:
        rooms = list_rooms(conn)
        bookings = list_bookings_between(conn, start, end)
        rules = list_price_rules(conn, start, end + timedelta(days=1))

    by_room: dict[str, list[dict[str, Any]]] = {}
    for booking in bookings:
        by_room.setdefault(booking["room_id"], []).append(_booking_entry(booking))

    rooms.sort(key=lambda room: (room["number"] or room["name"] or "", room["id"]))
    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "days": [day.isoformat() for day in each_day(start, end)],
        "rooms": [
            {
                "id": room["id"],
                "number": room["number"] or room["name"],
                "name": room["name"],
                "basePrice": float(room["base_price"]),
                "prices": {
                    day.isoformat(): {
                        "price": float(rule["price"]) if rule["price"] is not None else None,
                        "isAvailable": rule["is_available"],
                    }
                    for day, rule in sorted(rules.get(room["id"], {}).items())
                },
                "bookings": by_room.get(room["id"], []),
            }
            for room in rooms
        ],
    }
