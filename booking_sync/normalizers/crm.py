"""
Field mapping between local cache rows and CRM records.

Outbound mappers emit only the fields present in the input, so a partial
update never blanks CRM fields it did not mean to touch. Inbound mappers
apply the defaults the rest of the engine relies on (two adults, one
minimum night, CONFIRMED status).
"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

from booking_sync.config import CURRENCY
from booking_sync.utils.ids import is_provisional
from booking_sync.utils.money import to_money


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if isinstance(value, date) else value


def _number(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


# local column -> (CRM field, outbound converter)
BOOKING_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "check_in": ("Check_In", _iso),
    "check_out": ("Check_Out", _iso),
    "total_price": ("Total_Price", _number),
    "num_adults": ("Number_of_Adults", int),
    "num_children": ("Number_of_Children", int),
    "guest_ages": ("Guest_Ages", lambda v: v),
    "notes": ("Booking_Notes", lambda v: v),
    "payment_status": ("Payment_Status", lambda v: v),
    "voucher_code": ("Voucher_Code", lambda v: v),
    "discount_amount": ("Discount_Amount", _number),
    "source": ("Source_Channel", lambda v: v),
    "currency": ("Currency1", lambda v: v),
    "status": ("Status", lambda v: v),
    "booking_ref": ("Booking_Reference", lambda v: v),
    "external_id": ("Beds24_Booking_ID", lambda v: v),
}

ROOM_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "name": ("Room_Name", lambda v: v),
    "base_price": ("Base_Price", _number),
    "capacity": ("Capacity", int),
    "max_adults": ("Max_Adults", int),
    "max_children": ("Max_Children", int),
    "min_nights": ("Min_Nights", int),
    "room_type": ("Room_Type", lambda v: v),
    "external_id": ("Beds24_Room_ID", lambda v: v),
}


def _map_present(values: dict[str, Any], fields: dict[str, tuple[str, Callable]]) -> dict[str, Any]:
    record = {}
    for column, (crm_field, convert) in fields.items():
        if column in values:
            value = values[column]
            record[crm_field] = convert(value) if value is not None else None
    return record


def booking_to_record(
    values: dict[str, Any],
    contact_id: Optional[str] = None,
    room_label: Optional[str] = None,
) -> dict[str, Any]:
    """
    Build a CRM Bookings record from local booking fields.

    Args:
        values: Local booking columns (full row or a partial update)
        contact_id: CRM Contact id to link as the guest
        room_label: Room number or name used in the record title

    Returns:
        dict[str, Any]: CRM record body
    """
    record = _map_present(values, BOOKING_FIELDS)
    if "guest_name" in values:
        record["Name"] = f"{values['guest_name']} - {room_label or 'Room'}"
    room_id = values.get("room_id")
    if room_id and not is_provisional(room_id):
        record["Room"] = room_id
    if contact_id:
        record["Guest"] = contact_id
    return record


def _lookup(record: dict[str, Any], field: str) -> dict[str, Any]:
    value = record.get(field)
    return value if isinstance(value, dict) else {}


def _int(value: Any, default: int) -> int:
    try:
        return int(value) if value not in (None, "") else default
    except (TypeError, ValueError):
        return default


def record_to_booking(record: dict[str, Any]) -> dict[str, Any]:
    """
    Map a CRM Bookings record to local booking columns.

    Raises:
        ValueError: The record has no usable stay dates or room link
    """
    room_id = _lookup(record, "Room").get("id") or record.get("Room")
    if not room_id or not isinstance(room_id, str):
        raise ValueError(f"CRM booking {record.get('id')} has no Room link")
    if not record.get("Check_In") or not record.get("Check_Out"):
        raise ValueError(f"CRM booking {record.get('id')} has no stay dates")

    guest = _lookup(record, "Guest")
    discount = record.get("Discount_Amount")
    return {
        "id": str(record["id"]),
        "room_id": room_id,
        "guest_name": guest.get("name") or "Unknown Guest",
        "guest_email": guest.get("Email") or None,
        "check_in": date.fromisoformat(str(record["Check_In"])[:10]),
        "check_out": date.fromisoformat(str(record["Check_Out"])[:10]),
        "total_price": to_money(record.get("Total_Price")),
        "num_adults": _int(record.get("Number_of_Adults"), 2),
        "num_children": _int(record.get("Number_of_Children"), 0),
        "guest_ages": record.get("Guest_Ages"),
        "notes": record.get("Booking_Notes"),
        "status": record.get("Status") or "CONFIRMED",
        "source": record.get("Source_Channel") or "DIRECT",
        "payment_status": record.get("Payment_Status"),
        "voucher_code": record.get("Voucher_Code"),
        "discount_amount": to_money(discount) if discount is not None else None,
        "currency": record.get("Currency1") or CURRENCY,
        "booking_ref": record.get("Booking_Reference"),
        "external_id": record.get("Beds24_Booking_ID") or None,
    }


def room_to_record(values: dict[str, Any]) -> dict[str, Any]:
    """Build a CRM Rooms record; the title is ``"<number> - <name>"``."""
    record = _map_present(values, ROOM_FIELDS)
    if "number" in values or "name" in values:
        record["Name"] = f"{values.get('number') or ''} - {values.get('name') or ''}"
    return record


def record_to_room(record: dict[str, Any]) -> dict[str, Any]:
    base_price = record.get("Base_Price")
    return {
        "id": str(record["id"]),
        "number": (record.get("Name") or "").split(" - ")[0],
        "name": record.get("Room_Name") or record.get("Name") or "",
        "base_price": to_money(base_price) if base_price is not None else Decimal("0.00"),
        "capacity": _int(record.get("Capacity"), 2),
        "max_adults": _int(record.get("Max_Adults"), 2),
        "max_children": _int(record.get("Max_Children"), 0),
        "min_nights": _int(record.get("Min_Nights"), 1),
        "room_type": record.get("Room_Type"),
        "external_id": record.get("Beds24_Room_ID") or None,
    }
