"""
Bulk reconciliation between the CRM and the local cache.

Pulls enumerate every CRM record of a module and upsert it locally by its
CRM id; they are safe to repeat and to run next to live traffic. Each record
is written in its own transaction, and a bad record is counted and skipped
without aborting the batch. The push half forwards bookings that only
exist locally (provisional import ids) to the CRM.
"""

from __future__ import annotations

from typing import Any

import structlog

from booking_sync.config import CRM_SOURCE, DRY_RUN
from booking_sync.db.readers.bookings import list_provisional_bookings
from booking_sync.db.readers.properties import get_first_property
from booking_sync.db.readers.rooms import get_room
from booking_sync.db.writers.bookings import upsert_booking
from booking_sync.db.writers.properties import insert_default_property
from booking_sync.db.writers.rooms import upsert_rooms
from booking_sync.errors import ValidationError
from booking_sync.metrics import records_synced, sync_failures
from booking_sync.normalizers.crm import record_to_booking, record_to_room
from booking_sync.services.repository import SyncingRepository
from booking_sync.utils.ids import PROVISIONAL_PREFIXES

logger = structlog.get_logger(__name__)

ENTITIES = ("bookings", "rooms", "all")
DEFAULT_PROPERTY_ID = "main"


def _default_property_id(repo: SyncingRepository) -> str:
    """Property that CRM-only rooms are attached to, created on first use."""
    with repo.engine.begin() as conn:
        prop = get_first_property(conn)
        if prop:
            return prop["id"]
        logger.info("default_property_created", property_id=DEFAULT_PROPERTY_ID)
        return insert_default_property(conn, DEFAULT_PROPERTY_ID, "Main Property")


def pull_rooms(repo: SyncingRepository, dry_run: bool = DRY_RUN) -> dict[str, int]:
    """
    Upsert every CRM room into the local cache.

    Returns:
        dict[str, int]: ``{"fetched", "synced", "failed"}``
    """
    records = repo.remote.list_rooms()
    property_id = _default_property_id(repo) if not dry_run else None
    synced = failed = 0

    for record in records:
        try:
            row = record_to_room(record)
            if not dry_run:
                with repo.engine.begin() as conn:
                    upsert_rooms(conn, [{**row, "property_id": property_id}])
            synced += 1
        except Exception as e:
            failed += 1
            sync_failures.labels(source=CRM_SOURCE, entity_type="rooms").inc()
            logger.exception("crm_room_pull_failed", record_id=record.get("id"), error=str(e))

    records_synced.labels(source=CRM_SOURCE, entity_type="rooms").inc(synced)
    logger.info("crm_rooms_pulled", fetched=len(records), synced=synced, failed=failed)
    return {"fetched": len(records), "synced": synced, "failed": failed}


def pull_bookings(repo: SyncingRepository, dry_run: bool = DRY_RUN) -> dict[str, int]:
    """
    Upsert every CRM booking into the local cache, rebuilding its nights.

    Bookings referencing a room the cache does not know are counted as
    failures; pulling rooms first avoids them.
    """
    records = repo.remote.list_bookings()
    synced = failed = 0

    for record in records:
        try:
            row = record_to_booking(record)
            if not dry_run:
                with repo.engine.begin() as conn:
                    if get_room(conn, row["room_id"]) is None:
                        raise ValueError(f"Room {row['room_id']} is not in the local cache")
                    upsert_booking(conn, row)
            synced += 1
        except Exception as e:
            failed += 1
            sync_failures.labels(source=CRM_SOURCE, entity_type="bookings").inc()
            logger.exception("crm_booking_pull_failed", record_id=record.get("id"), error=str(e))

    records_synced.labels(source=CRM_SOURCE, entity_type="bookings").inc(synced)
    logger.info("crm_bookings_pulled", fetched=len(records), synced=synced, failed=failed)
    return {"fetched": len(records), "synced": synced, "failed": failed}


def push_local_bookings(repo: SyncingRepository, dry_run: bool = DRY_RUN) -> dict[str, int]:
    """Forward bookings the CRM has never seen and move them onto their CRM ids."""
    with repo.engine.connect() as conn:
        pending = list_provisional_bookings(conn, PROVISIONAL_PREFIXES)

    pushed = failed = 0
    for booking in pending:
        if dry_run:
            pushed += 1
            continue
        with repo.engine.connect() as conn:
            room = get_room(conn, booking["room_id"]) or {}
        try:
            repo.promote_booking(booking["id"], booking, room.get("number") or room.get("name"))
            pushed += 1
        except Exception as e:
            failed += 1
            sync_failures.labels(source=CRM_SOURCE, entity_type="bookings").inc()
            logger.exception("crm_booking_push_failed", booking_id=booking["id"], error=str(e))

    logger.info("crm_bookings_pushed", pending=len(pending), pushed=pushed, failed=failed)
    return {"pending": len(pending), "pushed": pushed, "failed": failed}


def sync_with_crm(repo: SyncingRepository, entity: str = "all") -> dict[str, Any]:
    """
    Two-way CRM sync for one entity type (or all).

    Local-only bookings are pushed before the pull so the pull does not
    bring back a second copy of them.

    Raises:
        ValidationError: Unknown entity
    """
    if entity not in ENTITIES:
        raise ValidationError(f"entity must be one of: {', '.join(ENTITIES)}")

    result: dict[str, Any] = {"entity": entity}
    if entity in ("rooms", "all"):
        result["rooms"] = pull_rooms(repo)
    if entity in ("bookings", "all"):
        result["pushed"] = push_local_bookings(repo)
        result["bookings"] = pull_bookings(repo)
    return result
