"""
Mapping of channel-manager API objects (properties, room types, bookings)
to local cache rows. Used by the bulk import, not by the webhook.
"""

from datetime import date
from typing import Any, Optional

from booking_sync.config import CHANNEL_SOURCE, CURRENCY
from booking_sync.normalizers.channel_webhook import clean_value, map_channel_status, parse_price
from booking_sync.utils.money import to_money


def _int(value: Any, default: int) -> int:
    try:
        return int(value) if value not in (None, "") else default
    except (TypeError, ValueError):
        return default


def _date(value: Any) -> date:
    text = clean_value(value)
    if not text:
        raise ValueError("Missing stay date")
    return date.fromisoformat(text[:10])


def property_values(prop: dict[str, Any]) -> dict[str, Any]:
    return {
        "external_id": str(prop["id"]),
        "name": prop.get("name") or f"Property {prop['id']}",
        "description": prop.get("description"),
        "address": prop.get("address"),
    }


def room_units(prop: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Flatten room types into bookable rooms.

    A room type with physical units yields one room per unit; one without
    units is itself the room.
    """
    rooms = []
    for room_type in prop.get("roomTypes") or []:
        units = room_type.get("rooms") or [
            {"id": room_type.get("id"), "name": room_type.get("name")}
        ]
        max_people = _int(room_type.get("maxPeople"), 2)
        for unit in units:
            if unit.get("id") is None:
                continue
            rooms.append(
                {
                    "external_id": str(unit["id"]),
                    "number": str(unit.get("name") or room_type.get("name") or unit["id"]),
                    "name": room_type.get("name"),
                    "base_price": to_money(room_type.get("basePrice") or 0),
                    "capacity": max_people,
                    "max_adults": _int(room_type.get("maxAdults"), max_people),
                    "max_children": _int(room_type.get("maxChildren"), 0),
                }
            )
    return rooms


def booking_values(booking: dict[str, Any], room_id: str) -> dict[str, Any]:
    """
    Local booking columns for an API booking (``arrival``/``departure`` are
    already a half-open range).

    Raises:
        ValueError: The booking has no usable stay dates
    """
    name = f"{clean_value(booking.get('firstName'))} {clean_value(booking.get('lastName'))}"
    source = clean_value(booking.get("apiSource")) or CHANNEL_SOURCE
    return {
        "room_id": room_id,
        "guest_name": name.strip() or "Guest",
        "guest_email": clean_value(booking.get("email")) or None,
        "guest_phone": clean_value(booking.get("phone") or booking.get("mobile")) or None,
        "check_in": _date(booking.get("arrival")),
        "check_out": _date(booking.get("departure")),
        "status": map_channel_status(booking.get("status")),
        "source": source.upper(),
        "total_price": parse_price(booking.get("price")),
        "currency": CURRENCY,
        "num_adults": _int(booking.get("numAdult"), 2) or 1,
        "num_children": _int(booking.get("numChild"), 0),
        "external_id": str(booking["id"]),
    }


def booking_external_id(booking: dict[str, Any]) -> Optional[str]:
    value = booking.get("id")
    return str(value) if value is not None else None
