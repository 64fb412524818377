"""
Local-cache writes for bookings and their per-night occupancy rows.

Every function takes an open connection so callers decide the transaction
boundary: a booking row and its ``booking_nights`` rows are always written
in the same transaction.
"""

from datetime import date
from typing import Any, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Connection

from booking_sync.db.writers._upsert import upsert_with_distinct_check
from booking_sync.models.bookings import NON_OCCUPYING_STATUSES, Booking, BookingNight
from booking_sync.utils.datetime import each_night

BOOKING_COLUMNS = frozenset(Booking.__table__.c.keys())

# Fields whose change moves the booking on the calendar
OCCUPANCY_FIELDS = frozenset({"room_id", "check_in", "check_out", "status"})


def booking_row(values: dict[str, Any]) -> dict[str, Any]:
    """Drop keys that are not columns of ``bookings``."""
    return {k: v for k, v in values.items() if k in BOOKING_COLUMNS}


def write_booking_nights(
    conn: Connection,
    booking_id: str,
    room_id: str,
    check_in: date,
    check_out: date,
    status: str,
) -> int:
    """
    Replace the occupancy rows of one booking.

    Non-occupying statuses (CANCELLED, BLOCKED) end up with no rows. The
    ``(room_id, night)`` primary key raises ``IntegrityError`` when another
    booking already holds one of the nights.

    Returns:
        int: Number of nights written
    """
    conn.execute(delete(BookingNight).where(BookingNight.booking_id == booking_id))
    if status in NON_OCCUPYING_STATUSES:
        return 0

    nights = [
        {"room_id": room_id, "night": night, "booking_id": booking_id}
        for night in each_night(check_in, check_out)
    ]
    if nights:
        conn.execute(insert(BookingNight), nights)
    return len(nights)


def insert_booking(conn: Connection, values: dict[str, Any]) -> dict[str, Any]:
    """
    Insert one booking row. Occupancy rows are written separately.

    Args:
        conn (Connection): Connection inside the caller's transaction.
        values (dict[str, Any]): Booking fields; ``id`` must already be set.

    Returns:
        dict[str, Any]: The row as inserted
    """
    row = booking_row(values)
    conn.execute(insert(Booking).values(**row))
    return row


def update_booking(conn: Connection, booking_id: str, values: dict[str, Any]) -> int:
    """
    Update columns of one booking.

    Returns:
        int: Rows affected (0 when the booking is not in the local cache)
    """
    row = booking_row(values)
    row.pop("id", None)
    if not row:
        return 0
    result = conn.execute(update(Booking).where(Booking.id == booking_id).values(**row))
    return result.rowcount


def delete_booking(conn: Connection, booking_id: str) -> int:
    conn.execute(delete(BookingNight).where(BookingNight.booking_id == booking_id))
    result = conn.execute(delete(Booking).where(Booking.id == booking_id))
    return result.rowcount


def delete_all_bookings(conn: Connection) -> int:
    """Wipe every local booking. Used only by the confirmed full re-import."""
    conn.execute(delete(BookingNight))
    result = conn.execute(delete(Booking))
    return result.rowcount


def rekey_booking(conn: Connection, old_id: str, new_id: str) -> None:
    """
    Move a booking from a provisional id to its CRM record id.

    Occupancy rows reference the booking id, so they are dropped, the id is
    changed and the rows are rebuilt, all inside the caller's transaction.
    """
    current = conn.execute(select(Booking).where(Booking.id == old_id)).mappings().first()
    if current is None:
        return
    conn.execute(delete(BookingNight).where(BookingNight.booking_id == old_id))
    conn.execute(update(Booking).where(Booking.id == old_id).values(id=new_id))
    write_booking_nights(
        conn, new_id, current["room_id"], current["check_in"], current["check_out"], current["status"]
    )


def upsert_booking(conn: Connection, values: dict[str, Any]) -> None:
    """
    Insert or refresh one booking keyed by id, then rebuild its nights.

    Used by reconciliation pulls, which must be safe to repeat.
    """
    row = booking_row(values)
    upsert_with_distinct_check(conn, Booking, [row], conflict_columns=["id"])
    write_booking_nights(
        conn, row["id"], row["room_id"], row["check_in"], row["check_out"], row["status"]
    )


def set_external_id(conn: Connection, booking_id: str, external_id: Optional[str]) -> None:
    conn.execute(update(Booking).where(Booking.id == booking_id).values(external_id=external_id))


def link_guest(conn: Connection, booking_id: str, guest_id: int) -> None:
    conn.execute(update(Booking).where(Booking.id == booking_id).values(guest_id=guest_id))
