"""
Booking admission rules.

``validate_booking`` is the one gate every booking create/update goes
through (admin API, public API, channel webhook). Automated imports replay
an already-confirmed external state and skip it; the per-night occupancy
table still backs them at the storage layer.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy.engine import Connection

from booking_sync.db.readers.bookings import find_overlapping_booking
from booking_sync.db.readers.rooms import get_room
from booking_sync.errors import ConflictError, NotFoundError
from booking_sync.utils.datetime import nights_between


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def check_room_limits(
    room: dict[str, Any], check_in: date, check_out: date, num_adults: int, num_children: int
) -> int:
    """
    Apply the capacity and stay-length rules to a room row.

    Returns:
        int: Number of nights of the stay

    Raises:
        ConflictError: CapacityExceeded, InvalidRange or MinStayViolation
    """
    if num_adults > room["max_adults"]:
        raise ConflictError(
            f"This room allows a maximum of {_plural(room['max_adults'], 'adult')}",
            kind=ConflictError.CAPACITY_EXCEEDED,
        )

    if num_adults + num_children > room["capacity"]:
        raise ConflictError(
            f"This room has a maximum capacity of {_plural(room['capacity'], 'guest')}",
            kind=ConflictError.CAPACITY_EXCEEDED,
        )

    nights = nights_between(check_in, check_out)
    if nights < 1:
        raise ConflictError("Check-out must be after check-in", kind=ConflictError.INVALID_RANGE)

    if nights < room["min_nights"]:
        raise ConflictError(
            f"Minimum stay is {_plural(room['min_nights'], 'night')}",
            kind=ConflictError.MIN_STAY_VIOLATION,
        )

    return nights


def validate_booking(
    conn: Connection,
    room_id: str,
    check_in: date,
    check_out: date,
    num_adults: int,
    num_children: int,
    exclude_booking_id: Optional[str] = None,
) -> dict[str, Any]:
    """
    Decide whether a room can take a stay. Read-only; first failing rule wins.

    Args:
        conn: Active database connection
        room_id: Room to book
        check_in: First night
        check_out: Checkout day (not occupied)
        num_adults: Adults in the party
        num_children: Children in the party
        exclude_booking_id: Booking being updated, ignored by the overlap check

    Returns:
        dict[str, Any]: The room row

    Raises:
        NotFoundError: The room does not exist
        ConflictError: A capacity, range, minimum-stay or overlap rule failed
    """
    room = get_room(conn, room_id)
    if room is None:
        raise NotFoundError(f"Room {room_id} not found")

    check_room_limits(room, check_in, check_out, num_adults, num_children)

    overlap = find_overlapping_booking(conn, room_id, check_in, check_out, exclude_booking_id)
    if overlap:
        raise ConflictError(
            f"Date conflict: {overlap['guest_name']} already has a booking from "
            f"{overlap['check_in'].isoformat()} to {overlap['check_out'].isoformat()}",
            kind=ConflictError.DATE_CONFLICT,
        )

    return room
