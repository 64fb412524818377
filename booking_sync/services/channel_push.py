"""
Best-effort pushes from the local system to the channel manager.

Nothing in here raises upstream failures to the caller: the booking or rate
change that triggered the push is already durable. Every booking push and
cancel writes an OUTGOING WebhookLog row so failures can be followed up.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from booking_sync.config import CHANNEL_SOURCE
from booking_sync.db.readers.properties import (
    get_property_for_room,
    get_property_with_channel_credentials,
)
from booking_sync.db.readers.rooms import get_room
from booking_sync.db.writers.bookings import set_external_id
from booking_sync.db.writers.webhook_logs import write_webhook_log
from booking_sync.errors import BookingSyncError
from booking_sync.models.webhook_logs import ERROR, OUTGOING, SKIPPED, SUCCESS
from booking_sync.network import channel

logger = structlog.get_logger(__name__)

BOOKING_CREATE = "BOOKING_CREATE"
BOOKING_CANCEL = "BOOKING_CANCEL"


def _channel_target(engine: Engine, room_id: str) -> tuple[Optional[dict], Optional[dict]]:
    """The room and its property, when both are linked to the channel manager."""
    with engine.connect() as conn:
        room = get_room(conn, room_id)
        prop = get_property_for_room(conn, room_id)
    if not room or not room.get("external_id"):
        return None, None
    if not prop or not prop.get("channel_refresh_token"):
        return room, None
    return room, prop


def push_booking(engine: Engine, booking: dict[str, Any]) -> Optional[str]:
    """
    Create a locally admitted booking in the channel manager.

    Bookings that already carry an ``external_id`` came from the channel
    manager and are never pushed back.

    Returns:
        Optional[str]: The channel booking id, stored as the booking's external_id
    """
    if booking.get("external_id"):
        return None

    room, prop = _channel_target(engine, booking["room_id"])
    if room is None or prop is None:
        write_webhook_log(
            engine,
            OUTGOING,
            CHANNEL_SOURCE,
            BOOKING_CREATE,
            SKIPPED,
            booking_id=booking["id"],
            room_id=booking["room_id"],
            error="Room or property not linked to the channel manager",
        )
        return None

    try:
        payload = channel.booking_payload(booking, room["external_id"])
        token = channel.token_for_property(prop)
        channel_id = channel.create_booking(token, payload)
    except (BookingSyncError, ValueError) as e:
        logger.warning("channel_push_failed", booking_id=booking["id"], error=str(e))
        write_webhook_log(
            engine,
            OUTGOING,
            CHANNEL_SOURCE,
            BOOKING_CREATE,
            ERROR,
            booking_id=booking["id"],
            room_id=booking["room_id"],
            error=str(e),
        )
        return None

    if channel_id:
        with engine.begin() as conn:
            set_external_id(conn, booking["id"], channel_id)

    write_webhook_log(
        engine,
        OUTGOING,
        CHANNEL_SOURCE,
        BOOKING_CREATE,
        SUCCESS,
        booking_id=booking["id"],
        external_id=channel_id,
        room_id=booking["room_id"],
        payload=str(payload),
        details={"guestName": booking.get("guest_name"), "channelBookingId": channel_id},
    )
    logger.info("channel_booking_pushed", booking_id=booking["id"], channel_booking_id=channel_id)
    return channel_id


def cancel_booking(engine: Engine, booking: dict[str, Any]) -> bool:
    """Mark a channel-linked booking cancelled in the channel manager."""
    external_id = booking.get("external_id")
    if not external_id or not str(external_id).isdigit():
        return False

    with engine.connect() as conn:
        prop = get_property_for_room(conn, booking["room_id"])
        if not prop or not prop.get("channel_refresh_token"):
            prop = get_property_with_channel_credentials(conn)

    try:
        if not prop or not prop.get("channel_refresh_token"):
            raise BookingSyncError("No channel-manager credentials found")
        channel.cancel_booking(channel.token_for_property(prop), external_id)
    except BookingSyncError as e:
        logger.warning("channel_cancel_failed", booking_id=booking["id"], error=e.message)
        write_webhook_log(
            engine,
            OUTGOING,
            CHANNEL_SOURCE,
            BOOKING_CANCEL,
            ERROR,
            booking_id=booking["id"],
            external_id=external_id,
            error=e.message,
        )
        return False

    write_webhook_log(
        engine,
        OUTGOING,
        CHANNEL_SOURCE,
        BOOKING_CANCEL,
        SUCCESS,
        booking_id=booking["id"],
        external_id=external_id,
    )
    return True


def push_rates(engine: Engine, room_id: str, prices: list[tuple[date, Decimal]]) -> bool:
    """
    Mirror nightly prices to the channel calendar.

    Returns:
        bool: True if the channel manager accepted the batch
    """
    if not prices:
        return False

    room, prop = _channel_target(engine, room_id)
    if room is None or prop is None:
        logger.debug("channel_rate_push_skipped", room_id=room_id)
        return False

    try:
        channel.push_rates(channel.token_for_property(prop), room["external_id"], prices)
    except (BookingSyncError, ValueError) as e:
        logger.warning("channel_rate_push_failed", room_id=room_id, dates=len(prices), error=str(e))
        return False

    logger.info("channel_rates_pushed", room_id=room_id, dates=len(prices))
    return True
