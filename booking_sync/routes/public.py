"""Guest-facing endpoints: room catalogue, availability, booking and voucher checks."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.engine import Engine

from booking_sync.dependencies import get_db_engine, get_repository
from booking_sync.db.readers.properties import get_property
from booking_sync.db.readers.rooms import get_room, list_rooms
from booking_sync.errors import NotFoundError, ValidationError
from booking_sync.routes._helpers import parse_date_param
from booking_sync.schemas.bookings import PublicBookingPayload, VoucherValidatePayload
from booking_sync.services.bookings import create_public_booking
from booking_sync.services.quoting import quote_availability
from booking_sync.services.repository import SyncingRepository
from booking_sync.services.vouchers import validate_voucher_code
from booking_sync.utils.datetime import local_today

logger = structlog.get_logger(__name__)
router = APIRouter()


def _room_summary(room: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": room["id"],
        "propertyId": room["property_id"],
        "number": room["number"],
        "name": room["name"],
        "description": room["description"],
        "roomType": room["room_type"],
        "capacity": room["capacity"],
        "maxAdults": room["max_adults"],
        "maxChildren": room["max_children"],
        "minNights": room["min_nights"],
        "amenities": room["amenities"] or [],
        "basePrice": float(room["base_price"]),
    }


@router.get("/availability")
def get_availability(
    check_in: Optional[str] = Query(None, alias="checkIn"),
    check_out: Optional[str] = Query(None, alias="checkOut"),
    property_id: Optional[str] = Query(None, alias="propertyId"),
    db_engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    List rooms bookable for the whole stay, each with its price.

    Args:
        check_in: First night, ``YYYY-MM-DD``
        check_out: Checkout day, ``YYYY-MM-DD``
        property_id: Restrict to one property

    Returns:
        dict: ``{"checkIn", "checkOut", "rooms": [... {"pricing": {...}}]}``

    Example:
        >>> GET /public/availability?checkIn=2026-07-01&checkOut=2026-07-03
    """
    start = parse_date_param(check_in, "checkIn")
    end = parse_date_param(check_out, "checkOut")
    if end <= start:
        raise ValidationError("checkOut must be after checkIn")
    if start < local_today():
        raise ValidationError("checkIn cannot be in the past")

    with db_engine.connect() as conn:
        quotes = quote_availability(conn, start, end, property_id)

    return {
        "checkIn": start.isoformat(),
        "checkOut": end.isoformat(),
        "rooms": [{**_room_summary(q.room), "pricing": q.pricing()} for q in quotes],
    }


def _property_summary(prop: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if prop is None:
        return None
    return {
        "id": prop["id"],
        "name": prop["name"],
        "description": prop["description"],
        "address": prop["address"],
    }


@router.get("/rooms")
def get_rooms(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    room_id: Optional[str] = Query(None, alias="roomId"),
    db_engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Room catalogue for the booking widget, or one room's detail with ``roomId``.

    Raises:
        NotFoundError: ``roomId`` or ``propertyId`` unknown
    """
    with db_engine.connect() as conn:
        if room_id:
            room = get_room(conn, room_id)
            if room is None:
                raise NotFoundError("Room not found")
            prop = get_property(conn, room["property_id"]) if room["property_id"] else None
            return {**_room_summary(room), "property": _property_summary(prop)}

        prop = None
        if property_id:
            prop = get_property(conn, property_id)
            if prop is None:
                raise NotFoundError("Property not found")
        rooms = list_rooms(conn, property_id)

    rooms.sort(key=lambda room: (room["number"] or "", room["id"]))
    return {
        "property": _property_summary(prop),
        "rooms": [_room_summary(room) for room in rooms],
    }


@router.post("/booking", status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: PublicBookingPayload,
    repo: SyncingRepository = Depends(get_repository),
) -> dict[str, Any]:
    """
    Create a website booking.

    Returns:
        dict: The booking id, its ``PREFIX-YYYY-NNNN`` reference and the
        balance due date
    """
    booking = create_public_booking(repo, payload.to_values())
    return {
        "success": True,
        "bookingId": booking["id"],
        "bookingRef": booking["booking_ref"],
        "status": booking["status"],
        "totalPrice": float(booking["total_price"]),
        "discountAmount": (
            float(booking["discount_amount"]) if booking["discount_amount"] is not None else None
        ),
        "currency": booking["currency"],
        "balanceDueDate": booking["balance_due_date"].isoformat(),
    }


@router.post("/voucher/validate")
def validate_voucher(
    payload: VoucherValidatePayload,
    db_engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Check a discount code. An unusable code is a 200 with ``valid: false``.
    """
    with db_engine.connect() as conn:
        result = validate_voucher_code(
            conn, payload.code, payload.total_amount, payload.nights, local_today()
        )
    return result.to_dict()
