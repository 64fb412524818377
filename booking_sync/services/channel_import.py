"""
Bulk import from the channel manager.

Replays the channel manager's confirmed state into the local cache:
properties and rooms first, then every booking in a bounded window. Imports
apply looser validation than live admission (no capacity or min-stay
checks), but the per-night occupancy key still rejects double bookings.
New bookings are stored under a provisional id and then forwarded to the
CRM best-effort; CRM failures are counted and never abort the import.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Any, Optional

import structlog
from sqlalchemy.exc import IntegrityError

from booking_sync.config import (
    CHANNEL_IMPORT_FUTURE_DAYS,
    CHANNEL_IMPORT_PAST_DAYS,
    CHANNEL_SOURCE,
    DRY_RUN,
)
from booking_sync.db.readers.bookings import count_bookings_by_status, get_booking_by_external_id
from booking_sync.db.readers.properties import get_property_with_channel_credentials
from booking_sync.db.readers.rooms import get_room_by_external_id, list_rooms
from booking_sync.db.writers.bookings import (
    delete_all_bookings,
    insert_booking,
    link_guest,
    update_booking,
    write_booking_nights,
)
from booking_sync.db.writers.guests import upsert_guest
from booking_sync.db.writers.properties import store_channel_credentials, upsert_channel_property
from booking_sync.db.writers.rooms import insert_room, update_room
from booking_sync.errors import BookingSyncError, ValidationError
from booking_sync.metrics import records_synced, sync_failures
from booking_sync.network import channel
from booking_sync.network.auth import exchange_invite_code, get_channel_token
from booking_sync.normalizers import channel_api
from booking_sync.services.repository import SyncingRepository
from booking_sync.utils.datetime import local_today
from booking_sync.utils.ids import IMPORT_PREFIX, is_provisional, provisional_id

logger = structlog.get_logger(__name__)


@dataclass
class ImportResult:
    properties: list[dict[str, Any]] = field(default_factory=list)
    bookings_created: int = 0
    bookings_updated: int = 0
    bookings_skipped: int = 0
    bookings_wiped: int = 0
    crm_synced: int = 0
    crm_failed: int = 0
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "properties": data["properties"],
            "bookings": {
                "created": self.bookings_created,
                "updated": self.bookings_updated,
                "skipped": self.bookings_skipped,
                "wiped": self.bookings_wiped,
            },
            "crmSync": {"synced": self.crm_synced, "failed": self.crm_failed},
            "dryRun": self.dry_run,
        }


def preview_channel_import(repo: SyncingRepository) -> dict[str, Any]:
    """What an import would start from: credentials and the current cache contents."""
    with repo.engine.connect() as conn:
        prop = get_property_with_channel_credentials(conn)
        rooms = list_rooms(conn)
        by_status = count_bookings_by_status(conn)
    return {
        "credentials": {
            "configured": bool(prop and prop.get("channel_refresh_token")),
            "propertyId": prop["id"] if prop else None,
        },
        "rooms": len(rooms),
        "linkedRooms": sum(1 for r in rooms if r.get("external_id")),
        "bookingsByStatus": by_status,
        "window": {"pastDays": CHANNEL_IMPORT_PAST_DAYS, "futureDays": CHANNEL_IMPORT_FUTURE_DAYS},
    }


def _resolve_credentials(
    repo: SyncingRepository, invite_code: Optional[str]
) -> tuple[str, str, Optional[str]]:
    """
    Access token plus the refresh token to store on imported properties.

    A stored refresh token is preferred; an invite code is only exchanged
    when none is stored yet.
    """
    with repo.engine.connect() as conn:
        prop = get_property_with_channel_credentials(conn)

    if prop and prop.get("channel_refresh_token"):
        token = get_channel_token(prop["id"], prop["channel_refresh_token"])
        return token, prop["channel_refresh_token"], invite_code or prop.get("channel_invite_code")

    invite_code = invite_code or (prop or {}).get("channel_invite_code")
    if not invite_code:
        raise ValidationError("No channel-manager credentials stored; an invite code is required")
    setup = exchange_invite_code(invite_code)
    return setup["token"], setup["refreshToken"], invite_code


def _import_properties(
    repo: SyncingRepository,
    properties: list[dict[str, Any]],
    refresh_token: str,
    invite_code: Optional[str],
    result: ImportResult,
) -> None:
    for prop in properties:
        units = channel_api.room_units(prop)
        result.properties.append(
            {"property": prop.get("name"), "rooms": [u["number"] for u in units]}
        )
        if DRY_RUN:
            continue

        with repo.engine.begin() as conn:
            property_id = upsert_channel_property(conn, channel_api.property_values(prop))
            store_channel_credentials(conn, property_id, refresh_token, invite_code)
            for unit in units:
                existing = get_room_by_external_id(conn, unit["external_id"])
                if existing:
                    update_room(conn, existing["id"], unit)
                else:
                    insert_room(
                        conn,
                        {
                            **unit,
                            "id": provisional_id(IMPORT_PREFIX, f"room-{unit['external_id']}"),
                            "property_id": property_id,
                        },
                    )
        records_synced.labels(source=CHANNEL_SOURCE, entity_type="rooms").inc(len(units))


def _store_booking(
    repo: SyncingRepository, values: dict[str, Any]
) -> tuple[str, Optional[dict[str, Any]]]:
    """
    Upsert one imported booking by its channel id, in one transaction.

    Returns:
        tuple: (local booking id, the previous row or None if it was created)
    """
    with repo.engine.begin() as conn:
        existing = get_booking_by_external_id(conn, values["external_id"])
        if existing:
            booking_id = existing["id"]
            update_booking(conn, booking_id, values)
        else:
            booking_id = provisional_id(IMPORT_PREFIX, values["external_id"])
            insert_booking(conn, {**values, "id": booking_id})
        write_booking_nights(
            conn,
            booking_id,
            values["room_id"],
            values["check_in"],
            values["check_out"],
            values["status"],
        )
        if values.get("guest_email"):
            guest_id = upsert_guest(
                conn, values["guest_email"], values["guest_name"], values.get("guest_phone")
            )
            link_guest(conn, booking_id, guest_id)
    return booking_id, existing


def _forward_to_crm(
    repo: SyncingRepository,
    booking_id: str,
    values: dict[str, Any],
    room: dict[str, Any],
    result: ImportResult,
) -> None:
    label = room.get("number") or room.get("name")
    try:
        if is_provisional(booking_id):
            repo.promote_booking(booking_id, values, label)
        else:
            repo.remote.update_booking(booking_id, values, label)
        result.crm_synced += 1
    except (BookingSyncError, IntegrityError) as e:
        result.crm_failed += 1
        sync_failures.labels(source="CRM", entity_type="bookings").inc()
        logger.warning("crm_forward_failed", booking_id=booking_id, error=str(e))


def _import_bookings(
    repo: SyncingRepository, bookings: list[dict[str, Any]], result: ImportResult
) -> None:
    for raw in bookings:
        external_id = channel_api.booking_external_id(raw)
        with repo.engine.connect() as conn:
            room = get_room_by_external_id(conn, str(raw.get("roomId")))
        if room is None or external_id is None:
            result.bookings_skipped += 1
            logger.info("channel_booking_unmapped", external_id=external_id, room=raw.get("roomId"))
            continue

        try:
            values = channel_api.booking_values(raw, room["id"])
        except ValueError as e:
            result.bookings_skipped += 1
            sync_failures.labels(source=CHANNEL_SOURCE, entity_type="bookings").inc()
            logger.warning("channel_booking_invalid", external_id=external_id, error=str(e))
            continue

        if DRY_RUN:
            result.bookings_created += 1
            continue

        try:
            booking_id, existing = _store_booking(repo, values)
        except IntegrityError as e:
            result.bookings_skipped += 1
            sync_failures.labels(source=CHANNEL_SOURCE, entity_type="bookings").inc()
            logger.warning("channel_booking_rejected", external_id=external_id, error=str(e.orig))
            continue

        if existing:
            result.bookings_updated += 1
        else:
            result.bookings_created += 1
        records_synced.labels(source=CHANNEL_SOURCE, entity_type="bookings").inc()
        _forward_to_crm(repo, booking_id, values, room, result)


def run_channel_import(
    repo: SyncingRepository,
    invite_code: Optional[str] = None,
    clear_existing: bool = False,
    confirm: bool = False,
) -> ImportResult:
    """
    Import properties, rooms and bookings from the channel manager.

    Args:
        repo: Write-through repository (its CRM receives the forwarded bookings)
        invite_code: One-time setup code, needed only before credentials are stored
        clear_existing: Delete every local booking first
        confirm: Must be True for ``clear_existing`` to take effect

    Returns:
        ImportResult: Counts per step

    Raises:
        ValidationError: Wipe requested without confirmation, or no credentials
        UpstreamError: The channel manager could not be read
    """
    if clear_existing and not confirm:
        raise ValidationError("clearExisting requires confirm=true")

    result = ImportResult(dry_run=DRY_RUN)
    token, refresh_token, invite_code = _resolve_credentials(repo, invite_code)

    properties = channel.fetch_properties(token)
    today = local_today()
    bookings = channel.fetch_bookings(
        token,
        today - timedelta(days=CHANNEL_IMPORT_PAST_DAYS),
        today + timedelta(days=CHANNEL_IMPORT_FUTURE_DAYS),
    )

    if clear_existing and not DRY_RUN:
        with repo.engine.begin() as conn:
            result.bookings_wiped = delete_all_bookings(conn)
        logger.warning("local_bookings_wiped", count=result.bookings_wiped)

    _import_properties(repo, properties, refresh_token, invite_code, result)
    _import_bookings(repo, bookings, result)

    logger.info(
        "channel_import_completed",
        created=result.bookings_created,
        updated=result.bookings_updated,
        skipped=result.bookings_skipped,
        crm_synced=result.crm_synced,
        crm_failed=result.crm_failed,
    )
    return result
