from datetime import date
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.engine import Connection

from booking_sync.models.bookings import CANCELLED, NON_OCCUPYING_STATUSES, Booking


def get_booking(conn: Connection, booking_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch one booking by its id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        booking_id (str): Booking id (CRM record id or provisional import id).

    Returns:
        Optional[dict[str, Any]]: Booking row as a dict, or None if not found
    """
    row = conn.execute(select(Booking).where(Booking.id == booking_id)).mappings().first()
    return dict(row) if row else None


def get_booking_by_external_id(conn: Connection, external_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch a booking by its channel-manager id (the inbound idempotency key).

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        external_id (str): Channel manager booking id, or an iCal UID.

    Returns:
        Optional[dict[str, Any]]: Booking row as a dict, or None if not found
    """
    row = (
        conn.execute(select(Booking).where(Booking.external_id == str(external_id)))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def find_overlapping_booking(
    conn: Connection,
    room_id: str,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    """
    Find the first occupying booking whose stay overlaps ``[check_in, check_out)``.

    CANCELLED and BLOCKED bookings never conflict. The overlap test is
    half-open: ``existing.check_in < check_out AND existing.check_out > check_in``.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        room_id (str): Room to check.
        check_in (date): First night of the prospective stay.
        check_out (date): Checkout day of the prospective stay (not occupied).
        exclude_booking_id (Optional[str]): Booking being updated, ignored in the check.

    Returns:
        Optional[dict[str, Any]]: The earliest conflicting booking, or None
    """
    stmt = (
        select(Booking.id, Booking.guest_name, Booking.check_in, Booking.check_out)
        .where(
            Booking.room_id == room_id,
            Booking.status.not_in(NON_OCCUPYING_STATUSES),
            Booking.check_in < check_out,
            Booking.check_out > check_in,
        )
        .order_by(Booking.check_in, Booking.id)
    )
    if exclude_booking_id:
        stmt = stmt.where(Booking.id != exclude_booking_id)
    row = conn.execute(stmt).mappings().first()
    return dict(row) if row else None


def list_occupied_room_ids(conn: Connection, check_in: date, check_out: date) -> set[str]:
    """
    Room ids with any non-cancelled booking overlapping ``[check_in, check_out)``.

    BLOCKED bookings count here: a manual hold takes the room off sale.
    """
    stmt = select(Booking.room_id).where(
        Booking.status != CANCELLED,
        Booking.check_in < check_out,
        Booking.check_out > check_in,
    )
    return set(conn.execute(stmt).scalars().all())


def list_room_bookings_between(
    conn: Connection, room_id: str, start: date, end: date
) -> list[dict[str, Any]]:
    """Non-cancelled bookings of one room that touch the closed interval ``[start, end]``."""
    stmt = (
        select(Booking.id, Booking.check_in, Booking.check_out, Booking.status)
        .where(
            Booking.room_id == room_id,
            Booking.status != CANCELLED,
            Booking.check_in <= end,
            Booking.check_out > start,
        )
        .order_by(Booking.check_in)
    )
    return [dict(r) for r in conn.execute(stmt).mappings().all()]


def list_bookings_between(conn: Connection, start: date, end: date) -> list[dict[str, Any]]:
    """
    Non-cancelled bookings of every room that touch the closed interval ``[start, end]``.

    BLOCKED holds are included; the dashboard timeline shows them.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        start (date): First day of the window.
        end (date): Last day of the window (inclusive).

    Returns:
        list[dict[str, Any]]: Full booking rows ordered by room, then check-in
    """
    stmt = (
        select(Booking)
        .where(
            Booking.status != CANCELLED,
            Booking.check_in <= end,
            Booking.check_out > start,
        )
        .order_by(Booking.room_id, Booking.check_in)
    )
    return [dict(r) for r in conn.execute(stmt).mappings().all()]


def list_confirmed_bookings(conn: Connection, room_id: str) -> list[dict[str, Any]]:
    """CONFIRMED bookings of one room, oldest stay first. Feeds the iCal export."""
    stmt = (
        select(Booking)
        .where(Booking.room_id == room_id, Booking.status == "CONFIRMED")
        .order_by(Booking.check_in, Booking.id)
    )
    return [dict(r) for r in conn.execute(stmt).mappings().all()]


def has_active_bookings_from(conn: Connection, room_id: str, today: date) -> bool:
    """True when the room has a non-cancelled booking whose checkout is today or later."""
    stmt = (
        select(Booking.id)
        .where(
            Booking.room_id == room_id,
            Booking.status != CANCELLED,
            Booking.check_out >= today,
        )
        .limit(1)
    )
    return conn.execute(stmt).first() is not None


def get_latest_booking_ref(conn: Connection, prefix: str) -> Optional[str]:
    """
    Highest booking reference starting with ``prefix``.

    Numbers are zero-padded to four digits but may grow past that, so the
    longest reference wins before the lexicographic comparison.
    """
    stmt = (
        select(Booking.booking_ref)
        .where(Booking.booking_ref.like(f"{prefix}%"))
        .order_by(func.length(Booking.booking_ref).desc(), Booking.booking_ref.desc())
        .limit(1)
    )
    return conn.execute(stmt).scalar()


def list_provisional_bookings(conn: Connection, prefixes: tuple[str, ...]) -> list[dict[str, Any]]:
    """Bookings whose id is still a local placeholder (never reached the CRM)."""
    stmt = (
        select(Booking)
        .where(or_(*(Booking.id.like(f"{prefix}%") for prefix in prefixes)))
        .order_by(Booking.created_at, Booking.id)
    )
    return [dict(r) for r in conn.execute(stmt).mappings().all()]


def count_bookings_by_status(conn: Connection) -> dict[str, int]:
    stmt = select(Booking.status, func.count()).group_by(Booking.status)
    return {status: count for status, count in conn.execute(stmt).all()}
