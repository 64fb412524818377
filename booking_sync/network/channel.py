"""
Channel-manager client (Beds24 API v2).

Module-level functions taking an access token, in the style of a plain
REST client. Token acquisition lives in ``network.auth``; callers that hold
a property row use ``token_for_property``.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog

from booking_sync.config import CHANNEL_API_URL
from booking_sync.errors import UpstreamError
from booking_sync.network.auth import CHANNEL, get_channel_token
from booking_sync.network.client import parse_json, raise_for_upstream_status, send_request

logger = structlog.get_logger(__name__)

DIRECT_API_SOURCE = "DIRECT_WEBSITE"


def token_for_property(prop: dict[str, Any]) -> str:
    """
    Access token for a property row holding a stored refresh token.

    Raises:
        UpstreamError: The property has no channel credentials
    """
    refresh_token = prop.get("channel_refresh_token")
    if not refresh_token:
        raise UpstreamError(
            f"Property {prop.get('id')} has no channel-manager credentials", system=CHANNEL
        )
    return get_channel_token(prop["id"], refresh_token)


def _call(
    method: str,
    path: str,
    token: str,
    params: Optional[dict[str, Any]] = None,
    body: Any = None,
) -> Any:
    endpoint = path.strip("/")
    res = send_request(
        CHANNEL,
        method,
        f"{CHANNEL_API_URL}{path}",
        endpoint=endpoint,
        headers={"token": token},
        params=params,
        json=body,
    )
    raise_for_upstream_status(CHANNEL, endpoint, res)
    return parse_json(CHANNEL, res)


def _as_list(data: Any) -> list[dict[str, Any]]:
    """Responses come either as a bare list or wrapped in ``{"data": [...]}``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return data["data"]
    raise UpstreamError("Channel manager returned an unexpected data format", system=CHANNEL)


def fetch_properties(token: str) -> list[dict[str, Any]]:
    """All properties with their room types and units."""
    return _as_list(_call("GET", "/properties", token, params={"includeAllRooms": "true"}))


def fetch_bookings(token: str, start: date, end: date) -> list[dict[str, Any]]:
    """Bookings whose stay touches ``[start, end]``."""
    bookings = _as_list(
        _call(
            "GET",
            "/bookings",
            token,
            params={"startDate": start.isoformat(), "endDate": end.isoformat()},
        )
    )
    logger.info("channel_bookings_fetched", count=len(bookings), start=str(start), end=str(end))
    return bookings


def push_rates(token: str, channel_room_id: str, prices: list[tuple[date, Decimal]]) -> Any:
    """Write nightly prices to the channel calendar, one entry per date."""
    payload = [
        {
            "roomId": int(channel_room_id),
            "startDate": night.isoformat(),
            "endDate": night.isoformat(),
            "price1": float(price),
        }
        for night, price in prices
    ]
    return _call("POST", "/inventory/rooms/calendar", token, body=payload)


def booking_payload(booking: dict[str, Any], channel_room_id: str) -> dict[str, Any]:
    """Channel-manager booking body for a local booking."""
    first_name, _, last_name = (booking.get("guest_name") or "Guest").strip().partition(" ")
    return {
        "roomId": int(channel_room_id),
        "arrival": booking["check_in"].isoformat(),
        "departure": booking["check_out"].isoformat(),
        "status": "confirmed",
        "firstName": first_name or "Guest",
        "lastName": last_name or ".",
        "email": booking.get("guest_email") or "",
        "phone": booking.get("guest_phone") or "",
        "numAdult": booking.get("num_adults") or 2,
        "numChild": booking.get("num_children") or 0,
        "price": str(booking.get("total_price") or 0),
        "apiSource": DIRECT_API_SOURCE,
    }


def extract_created_id(result: Any) -> Optional[str]:
    """Channel booking id from a create response (several shapes are in use)."""
    entry = result[0] if isinstance(result, list) and result else result
    if not isinstance(entry, dict):
        return None
    if entry.get("success") is False:
        return None
    created = entry.get("new") if isinstance(entry.get("new"), dict) else entry
    booking_id = created.get("id")
    return str(booking_id) if booking_id is not None else None


def create_booking(token: str, payload: dict[str, Any]) -> Optional[str]:
    """
    Create a booking in the channel manager.

    Returns:
        Optional[str]: The channel booking id, if the response carried one
    """
    return extract_created_id(_call("POST", "/bookings", token, body=[payload]))


def cancel_booking(token: str, channel_booking_id: str) -> None:
    _call(
        "POST",
        "/bookings",
        token,
        body=[{"id": int(channel_booking_id), "status": "cancelled"}],
    )
