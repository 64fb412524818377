"""
Booking admission for the direct (admin) and public (website) entry points.

Every create and every date/room/party change goes through
``validate_booking`` before the write-through repository is called, so a
rejected booking never reaches the CRM.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from booking_sync.config import BALANCE_DUE_DAYS, BOOKING_REF_PREFIX, CURRENCY
from booking_sync.db.readers.bookings import get_booking, get_latest_booking_ref
from booking_sync.db.readers.rooms import get_room
from booking_sync.db.writers.bookings import link_guest
from booking_sync.db.writers.guests import upsert_guest
from booking_sync.errors import ConflictError, NotFoundError, ValidationError
from booking_sync.metrics import booking_admissions
from booking_sync.models.bookings import CANCELLED, NON_OCCUPYING_STATUSES
from booking_sync.services import channel_push
from booking_sync.services.repository import SyncingRepository
from booking_sync.services.validation import validate_booking
from booking_sync.services.vouchers import record_redemption, validate_voucher_code
from booking_sync.utils.datetime import local_today, nights_between
from booking_sync.utils.money import to_money

logger = structlog.get_logger(__name__)

DIRECT = "DIRECT"
WEBSITE = "WEBSITE"

# Changes to these fields re-run admission
ADMISSION_FIELDS = frozenset({"room_id", "check_in", "check_out", "num_adults", "num_children"})


def room_label(room: dict[str, Any]) -> str:
    return room.get("number") or room.get("name") or "Room"


def admit(
    engine: Engine,
    channel: str,
    room_id: str,
    check_in: date,
    check_out: date,
    num_adults: int,
    num_children: int,
    exclude_booking_id: Optional[str] = None,
) -> dict[str, Any]:
    """
    Run admission rules and count the outcome per entry channel.

    Returns:
        dict[str, Any]: The room row
    """
    try:
        with engine.connect() as conn:
            room = validate_booking(
                conn, room_id, check_in, check_out, num_adults, num_children, exclude_booking_id
            )
    except (ConflictError, NotFoundError) as e:
        booking_admissions.labels(channel=channel, outcome=e.kind).inc()
        logger.info(
            "booking_rejected",
            channel=channel,
            room_id=room_id,
            kind=e.kind,
            reason=e.message,
        )
        raise
    booking_admissions.labels(channel=channel, outcome="accepted").inc()
    return room


def create_direct_booking(repo: SyncingRepository, data: dict[str, Any]) -> dict[str, Any]:
    """
    Create a booking from the admin API.

    Args:
        repo: Write-through repository
        data: Booking columns; ``room_id``, ``guest_name``, ``check_in`` and
            ``check_out`` are required

    Returns:
        dict[str, Any]: The stored booking
    """
    values = {
        "num_adults": 2,
        "num_children": 0,
        "status": "CONFIRMED",
        "source": DIRECT,
        "currency": CURRENCY,
        "total_price": Decimal("0.00"),
        **{k: v for k, v in data.items() if v is not None},
    }
    values["total_price"] = to_money(values["total_price"])

    room = admit(
        repo.engine,
        "direct",
        values["room_id"],
        values["check_in"],
        values["check_out"],
        values["num_adults"],
        values["num_children"],
    )
    booking = repo.create_booking(values, room_label(room))

    channel_id = channel_push.push_booking(repo.engine, booking)
    if channel_id:
        booking["external_id"] = channel_id
    return booking


def update_existing_booking(
    repo: SyncingRepository, booking_id: str, changes: dict[str, Any]
) -> dict[str, Any]:
    """
    Apply a partial update to a booking.

    Admission is re-run only when the room, the dates or the party size
    change (or a cancelled or blocked booking is reopened), and only when
    the booking occupies its nights afterwards. Cancelling a
    channel-linked booking also cancels it in the channel manager.

    Raises:
        NotFoundError: No such booking
        ConflictError: The new dates or party do not fit
    """
    with repo.engine.connect() as conn:
        existing = get_booking(conn, booking_id)
    if existing is None:
        raise NotFoundError(f"Booking {booking_id} not found")

    changes = {k: v for k, v in changes.items() if existing.get(k) != v}
    if not changes:
        return existing

    merged = {**existing, **changes}
    occupying = merged["status"] not in NON_OCCUPYING_STATUSES
    reopened = occupying and existing["status"] in NON_OCCUPYING_STATUSES
    if occupying and (reopened or ADMISSION_FIELDS & changes.keys()):
        admit(
            repo.engine,
            "direct",
            merged["room_id"],
            merged["check_in"],
            merged["check_out"],
            merged["num_adults"],
            merged["num_children"],
            exclude_booking_id=booking_id,
        )
    elif "check_in" in changes or "check_out" in changes:
        if nights_between(merged["check_in"], merged["check_out"]) < 1:
            raise ConflictError(
                "Check-out must be after check-in", kind=ConflictError.INVALID_RANGE
            )

    with repo.engine.connect() as conn:
        room = get_room(conn, merged["room_id"])
    updated = repo.update_booking(
        booking_id, changes, existing, room_label(room) if room else None
    ) or merged

    if changes.get("status") == CANCELLED and existing["status"] != CANCELLED:
        channel_push.cancel_booking(repo.engine, updated)
    return updated


def delete_existing_booking(repo: SyncingRepository, booking_id: str) -> None:
    """
    Delete a booking.

    Bookings that still hold nights today or later must be cancelled first,
    so a delete never silently frees up sold inventory.
    """
    with repo.engine.connect() as conn:
        existing = get_booking(conn, booking_id)
    if existing is None:
        raise NotFoundError(f"Booking {booking_id} not found")

    if existing["status"] not in NON_OCCUPYING_STATUSES and existing["check_out"] >= local_today():
        raise ConflictError(
            "Only past, cancelled or blocked bookings can be deleted; cancel it first",
            kind=ConflictError.ACTIVE_RECORD,
        )
    repo.delete_booking(booking_id)


def next_booking_ref(engine: Engine, year: int, prefix: str = BOOKING_REF_PREFIX) -> str:
    """``PREFIX-YYYY-NNNN``, one past the highest reference issued this year."""
    year_prefix = f"{prefix}-{year}-"
    with engine.connect() as conn:
        latest = get_latest_booking_ref(conn, year_prefix)

    next_number = 1
    if latest:
        try:
            next_number = int(latest[len(year_prefix):]) + 1
        except ValueError:
            logger.warning("booking_ref_unparseable", booking_ref=latest)
    return f"{year_prefix}{next_number:04d}"


def create_public_booking(repo: SyncingRepository, data: dict[str, Any]) -> dict[str, Any]:
    """
    Create a paid booking from the website.

    The voucher, if any, is checked before anything is written and redeemed
    only after the booking exists. The guest profile is upserted by email.

    Args:
        repo: Write-through repository
        data: Booking columns plus ``locale``

    Returns:
        dict[str, Any]: The stored booking
    """
    engine = repo.engine
    today = local_today()
    check_in: date = data["check_in"]
    check_out: date = data["check_out"]
    num_adults = data.get("num_adults") or 2
    num_children = data.get("num_children") or 0
    total_price = to_money(data["total_price"])
    deposit = to_money(data["deposit_amount"]) if data.get("deposit_amount") else None
    balance = to_money(data["balance_amount"]) if data.get("balance_amount") else None

    voucher_result = None
    voucher_code = (data.get("voucher_code") or "").strip().upper() or None
    if voucher_code:
        with engine.connect() as conn:
            voucher_result = validate_voucher_code(
                conn, voucher_code, total_price, nights_between(check_in, check_out), today
            )
        if not voucher_result.valid:
            raise ValidationError(voucher_result.reason or "Invalid voucher code")

    room = admit(engine, "public", data["room_id"], check_in, check_out, num_adults, num_children)

    values = {
        "room_id": data["room_id"],
        "booking_ref": next_booking_ref(engine, today.year),
        "guest_name": data["guest_name"],
        "guest_email": data["guest_email"],
        "guest_phone": data.get("guest_phone"),
        "num_adults": num_adults,
        "num_children": num_children,
        "guest_ages": data.get("guest_ages"),
        "check_in": check_in,
        "check_out": check_out,
        "total_price": total_price,
        "currency": CURRENCY,
        "notes": data.get("notes"),
        "status": "DEPOSIT_PAID" if deposit else "CONFIRMED",
        "source": WEBSITE,
        "voucher_code": voucher_code,
        "discount_amount": voucher_result.discount_amount if voucher_result else None,
        "deposit_amount": deposit,
        "balance_amount": balance,
        "balance_due_date": check_in - timedelta(days=BALANCE_DUE_DAYS),
        "payment_status": "partial" if deposit else "paid",
        "payment_intent_id": data.get("payment_intent_id"),
    }
    booking = repo.create_booking(values, room_label(room))

    with engine.begin() as conn:
        guest_id = upsert_guest(
            conn,
            booking["guest_email"],
            booking["guest_name"],
            booking["guest_phone"],
            data.get("locale"),
        )
        link_guest(conn, booking["id"], guest_id)
    booking["guest_id"] = guest_id

    if voucher_result is not None and voucher_result.voucher is not None:
        _redeem(repo, voucher_result.voucher, booking)

    channel_id = channel_push.push_booking(engine, booking)
    if channel_id:
        booking["external_id"] = channel_id
    return booking


def _redeem(repo: SyncingRepository, voucher: dict[str, Any], booking: dict[str, Any]) -> None:
    """Redeem after the booking is durable; a lost usage-cap race keeps the booking."""
    try:
        with repo.engine.begin() as conn:
            used_count = record_redemption(
                conn, voucher["id"], booking["id"], booking["discount_amount"] or Decimal("0")
            )
    except ConflictError as e:
        logger.warning(
            "voucher_redemption_lost",
            voucher_id=voucher["id"],
            booking_id=booking["id"],
            reason=e.message,
        )
        return
    repo.push_voucher_usage(voucher["id"], used_count)

