"""
Rate editing: per-date price overrides and the day-of-week mass update.

Local writes commit first; the channel-manager calendar is updated
afterwards and best-effort.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy.engine import Engine

from booking_sync.db.readers.bookings import list_room_bookings_between
from booking_sync.db.readers.price_rules import list_price_rules
from booking_sync.db.readers.rooms import get_room, list_rooms
from booking_sync.db.writers.price_rules import upsert_price_rules
from booking_sync.errors import NotFoundError, ValidationError
from booking_sync.services import channel_push
from booking_sync.utils.datetime import each_day, js_weekday
from booking_sync.utils.money import to_money

logger = structlog.get_logger(__name__)

DEFAULT_GRID_DAYS = 30


def rate_grid(engine: Engine, start: date, end: Optional[date] = None) -> dict[str, Any]:
    """
    Prices per room for every day in ``[start, end]``.

    Days without an override are absent from ``prices``; the room's
    ``basePrice`` applies to them.
    """
    end = end or start + timedelta(days=DEFAULT_GRID_DAYS)
    if end < start:
        raise ValidationError("end must not be before start")

    with engine.connect() as conn:
        rooms = list_rooms(conn)
        rules = list_price_rules(conn, start, end + timedelta(days=1))

    return {
        "days": [day.isoformat() for day in each_day(start, end)],
        "rooms": [
            {
                "id": room["id"],
                "name": f"{room['number']} ({room['name']})" if room["name"] else room["number"],
                "basePrice": float(room["base_price"]),
                "externalId": room["external_id"],
                "prices": {
                    day.isoformat(): {
                        "price": float(rule["price"]) if rule["price"] is not None else None,
                        "isAvailable": rule["is_available"],
                        "minStay": rule["min_stay"],
                    }
                    for day, rule in sorted(rules.get(room["id"], {}).items())
                },
            }
            for room in rooms
        ],
    }


def _require_room(engine: Engine, room_id: str) -> dict[str, Any]:
    with engine.connect() as conn:
        room = get_room(conn, room_id)
    if room is None:
        raise NotFoundError(f"Room {room_id} not found")
    return room


def set_rate(engine: Engine, room_id: str, day: date, price: Any) -> dict[str, Any]:
    """Override the price of one date, then mirror it to the channel calendar."""
    _require_room(engine, room_id)
    amount = to_money(price)
    if amount < 0:
        raise ValidationError("price must not be negative")

    with engine.begin() as conn:
        upsert_price_rules(conn, room_id, [day], amount)
    logger.info("rate_set", room_id=room_id, date=day.isoformat(), price=str(amount))

    pushed = channel_push.push_rates(engine, room_id, [(day, amount)])
    return {"roomId": room_id, "date": day.isoformat(), "price": float(amount), "pushed": pushed}


def _booked_days(bookings: list[dict[str, Any]], days: Iterable[date]) -> set[date]:
    return {
        day
        for day in days
        for booking in bookings
        if booking["check_in"] <= day < booking["check_out"]
    }


def mass_update(
    engine: Engine,
    room_id: str,
    start: date,
    end: date,
    price: Any,
    days_of_week: Iterable[int],
    is_available: Optional[bool] = None,
    min_stay: Optional[int] = None,
) -> dict[str, Any]:
    """
    Set one price on every matching day of ``[start, end]``.

    Days are filtered by weekday (0=Sunday .. 6=Saturday) and days already
    sold to a non-cancelled booking are skipped, so a rate change never
    touches a night somebody has paid for. All matching dates are written in
    one transaction.

    Returns:
        dict[str, Any]: ``{"count", "updatedDates", "skippedDates", "pushed"}``
    """
    _require_room(engine, room_id)
    if end < start:
        raise ValidationError("endDate must not be before startDate")
    amount = to_money(price)
    if amount < 0:
        raise ValidationError("price must not be negative")

    weekdays = set(days_of_week)
    targets = [day for day in each_day(start, end) if js_weekday(day) in weekdays]
    if not targets:
        return {"count": 0, "updatedDates": [], "skippedDates": [], "pushed": False}

    with engine.begin() as conn:
        booked = _booked_days(list_room_bookings_between(conn, room_id, start, end), targets)
        to_update = [day for day in targets if day not in booked]
        if to_update:
            upsert_price_rules(conn, room_id, to_update, amount, is_available, min_stay)

    logger.info(
        "rates_mass_updated",
        room_id=room_id,
        updated=len(to_update),
        skipped=len(booked),
        price=str(amount),
    )

    pushed = channel_push.push_rates(engine, room_id, [(day, amount) for day in to_update])
    return {
        "count": len(to_update),
        "updatedDates": [day.isoformat() for day in to_update],
        "skippedDates": sorted(day.isoformat() for day in booked),
        "pushed": pushed,
    }
