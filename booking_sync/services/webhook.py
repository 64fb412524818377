"""
Inbound channel-manager webhook processing.

``ingest_channel_webhook`` is a contained boundary: every exception is caught,
every attempt (success or failure) is written to the WebhookLog table before
the response is built, and the caller always gets a status code and a body.
The channel manager disables webhooks that keep failing hard, so nothing may
escape to the HTTP layer from here.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import status

from booking_sync.config import CHANNEL_SOURCE
from booking_sync.db.readers.bookings import get_booking_by_external_id
from booking_sync.db.readers.rooms import get_room_by_external_id
from booking_sync.db.writers.webhook_logs import excerpt, write_webhook_log
from booking_sync.errors import (
    BookingSyncError,
    ConflictError,
    NotFoundError,
    ParseFailure,
    RoomNotFound,
)
from booking_sync.metrics import webhook_events
from booking_sync.models.bookings import NON_OCCUPYING_STATUSES
from booking_sync.models.webhook_logs import ERROR, INCOMING, SUCCESS
from booking_sync.normalizers.channel_webhook import CanonicalBookingEvent, normalize_webhook
from booking_sync.services.bookings import admit, room_label
from booking_sync.services.repository import SyncingRepository

logger = structlog.get_logger(__name__)

ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
VALIDATION_FAILED = "VALIDATION_FAILED"
PROCESSING_ERROR = "PROCESSING_ERROR"
CREATE = "CREATE"
UPDATE = "UPDATE"

# Fields a webhook update may overwrite; local notes and references are kept
UPDATABLE_FIELDS = (
    "room_id",
    "guest_name",
    "guest_email",
    "guest_phone",
    "check_in",
    "check_out",
    "status",
    "source",
    "total_price",
    "num_adults",
    "num_children",
)


def _fail(
    repo: SyncingRepository,
    event: str,
    status_code: int,
    message: str,
    payload: str,
    external_id: Optional[str] = None,
    room_id: Optional[str] = None,
    booking_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> tuple[int, dict[str, Any]]:
    write_webhook_log(
        repo.engine,
        INCOMING,
        CHANNEL_SOURCE,
        event,
        ERROR,
        booking_id=booking_id,
        external_id=external_id,
        room_id=room_id,
        payload=payload,
        error=message,
        details=details,
    )
    webhook_events.labels(event=event, status=ERROR).inc()
    logger.warning(
        "webhook_rejected", event=event, external_id=external_id, room_id=room_id, error=message
    )
    return status_code, {"success": False, "event": event, "error": message}


def _apply(repo: SyncingRepository, event: CanonicalBookingEvent) -> tuple[int, dict[str, Any]]:
    with repo.engine.connect() as conn:
        room = get_room_by_external_id(conn, event.provider_room_id)
        existing = get_booking_by_external_id(conn, event.provider_booking_id)

    if room is None:
        raise RoomNotFound(f"No local room mapped to channel room {event.provider_room_id}")

    values = event.booking_values(room["id"])
    existing_id = existing["id"] if existing else None

    if event.status not in NON_OCCUPYING_STATUSES:
        try:
            admit(
                repo.engine,
                "webhook",
                room["id"],
                event.check_in,
                event.check_out,
                event.num_adults,
                event.num_children,
                exclude_booking_id=existing_id,
            )
        except (ConflictError, NotFoundError) as e:
            return _fail(
                repo,
                VALIDATION_FAILED,
                e.status_code,
                e.message,
                event.payload_excerpt,
                external_id=event.provider_booking_id,
                room_id=room["id"],
                booking_id=existing_id,
                details={"kind": e.kind},
            )

    if existing:
        action = UPDATE
        changes = {k: values[k] for k in UPDATABLE_FIELDS if existing.get(k) != values[k]}
        booking_id = existing["id"]
        if changes:
            repo.update_booking(booking_id, changes, existing, room_label(room))
    else:
        action = CREATE
        booking_id = repo.create_booking(values, room_label(room))["id"]

    log_event = f"BOOKING_{action}"
    write_webhook_log(
        repo.engine,
        INCOMING,
        CHANNEL_SOURCE,
        log_event,
        SUCCESS,
        booking_id=booking_id,
        external_id=event.provider_booking_id,
        room_id=room["id"],
        payload=event.payload_excerpt,
        details={
            "mappedStatus": event.status,
            "strategy": event.strategy,
            "checkIn": event.check_in.isoformat(),
            "checkOut": event.check_out.isoformat(),
        },
    )
    webhook_events.labels(event=log_event, status=SUCCESS).inc()
    logger.info(
        "webhook_processed",
        action=action,
        booking_id=booking_id,
        external_id=event.provider_booking_id,
        status=event.status,
    )
    return status.HTTP_200_OK, {
        "success": True,
        "providerBookingId": event.provider_booking_id,
        "bookingId": booking_id,
        "roomId": room["id"],
        "mappedStatus": event.status,
        "action": action,
    }


def ingest_channel_webhook(
    repo: SyncingRepository, raw_body: bytes, content_type: Optional[str] = None
) -> tuple[int, dict[str, Any]]:
    """
    Normalize and apply one webhook delivery.

    Args:
        repo: Write-through repository
        raw_body: Body exactly as received
        content_type: Content-Type header, if any

    Returns:
        tuple: (HTTP status code, JSON body)
    """
    try:
        event = normalize_webhook(raw_body, content_type)
    except Exception as e:
        logger.exception("webhook_normalization_failed", content_type=content_type)
        raw = raw_body.decode("utf-8", errors="replace")
        return _fail(
            repo,
            PROCESSING_ERROR,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(e) or e.__class__.__name__,
            excerpt(raw) or "",
        )

    if isinstance(event, ParseFailure):
        return _fail(
            repo,
            event.event,
            event.status_code,
            event.reason,
            event.payload_excerpt,
            external_id=event.details.get("bookId"),
            room_id=event.details.get("roomId"),
            details=event.details or None,
        )

    try:
        return _apply(repo, event)
    except RoomNotFound as e:
        return _fail(
            repo,
            ROOM_NOT_FOUND,
            e.status_code,
            e.message,
            event.payload_excerpt,
            external_id=event.provider_booking_id,
            room_id=event.provider_room_id,
        )
    except ConflictError as e:
        # The occupancy key caught a race the admission check missed
        return _fail(
            repo,
            VALIDATION_FAILED,
            e.status_code,
            e.message,
            event.payload_excerpt,
            external_id=event.provider_booking_id,
            details={"kind": e.kind},
        )
    except BookingSyncError as e:
        return _fail(
            repo,
            PROCESSING_ERROR,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            e.message,
            event.payload_excerpt,
            external_id=event.provider_booking_id,
            details={"kind": e.kind},
        )
    except Exception as e:
        logger.exception("webhook_processing_failed", external_id=event.provider_booking_id)
        return _fail(
            repo,
            PROCESSING_ERROR,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(e) or e.__class__.__name__,
            event.payload_excerpt,
            external_id=event.provider_booking_id,
        )
