"""
Operator endpoints: imports, CRM reconciliation, channel credentials, room
administration, external calendar feeds and the sync log.

Long-running imports run inline so the operator sees the counts; they are
bounded by the import window and the CRM page size.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.engine import Engine

from booking_sync.db.readers.ical_feeds import list_ical_feeds
from booking_sync.db.readers.rooms import get_room
from booking_sync.db.readers.webhook_logs import (
    MAX_PAGE_SIZE,
    list_webhook_logs,
    summarize_statuses_since,
)
from booking_sync.db.writers.ical_feeds import add_ical_feed
from booking_sync.db.writers.webhook_logs import prune_webhook_logs
from booking_sync.dependencies import get_db_engine, get_repository
from booking_sync.errors import NotFoundError
from booking_sync.routes._helpers import camelize, camelize_all
from booking_sync.schemas.admin import ChannelImportPayload, ChannelSetupPayload, IcalFeedPayload
from booking_sync.schemas.rooms import RoomCreatePayload, RoomUpdatePayload
from booking_sync.services import rooms as room_admin
from booking_sync.services.channel_import import preview_channel_import, run_channel_import
from booking_sync.services.channel_settings import channel_settings, setup_channel
from booking_sync.services.ical import import_all_feeds, import_ical_feed
from booking_sync.services.reconcile import sync_with_crm
from booking_sync.services.repository import SyncingRepository
from booking_sync.utils.datetime import utc_now

logger = structlog.get_logger(__name__)
router = APIRouter()


# =============================================================================
# Channel manager
# =============================================================================


@router.get("/channel-import")
def channel_import_preview(repo: SyncingRepository = Depends(get_repository)) -> dict[str, Any]:
    return preview_channel_import(repo)


@router.post("/channel-import")
def channel_import(
    payload: ChannelImportPayload,
    repo: SyncingRepository = Depends(get_repository),
) -> dict[str, Any]:
    """
    Re-import properties, rooms and bookings from the channel manager.

    ``clearExisting`` wipes local bookings first and is ignored unless
    ``confirm`` is also true.
    """
    logger.info(
        "channel_import_requested",
        clear_existing=payload.clear_existing,
        confirm=payload.confirm,
    )
    result = run_channel_import(
        repo,
        invite_code=payload.invite_code,
        clear_existing=payload.clear_existing,
        confirm=payload.confirm,
    )
    return {"success": True, **result.to_dict()}


@router.get("/channel-settings")
def get_channel_settings(db_engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    return channel_settings(db_engine)


@router.post("/channel-settings")
def save_channel_settings(
    payload: ChannelSetupPayload, db_engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    """Exchange an invite code for a stored refresh token."""
    return setup_channel(db_engine, payload.invite_code, payload.property_id)


# =============================================================================
# CRM
# =============================================================================


@router.post("/crm-sync")
def crm_sync(
    entity: str = Query("all", description="bookings, rooms or all"),
    repo: SyncingRepository = Depends(get_repository),
) -> dict[str, Any]:
    """Push local-only bookings to the CRM, then pull CRM records into the cache."""
    return {"success": True, **sync_with_crm(repo, entity)}


# =============================================================================
# Rooms
# =============================================================================


@router.post("/rooms", status_code=status.HTTP_201_CREATED)
def create_room(
    payload: RoomCreatePayload, repo: SyncingRepository = Depends(get_repository)
) -> dict[str, Any]:
    return camelize(room_admin.create_room(repo, payload.to_values()))


@router.patch("/rooms/{room_id}")
def update_room(
    room_id: str,
    payload: RoomUpdatePayload,
    repo: SyncingRepository = Depends(get_repository),
) -> dict[str, Any]:
    return camelize(room_admin.update_room(repo, room_id, payload.to_values()))


@router.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_room(room_id: str, repo: SyncingRepository = Depends(get_repository)) -> Response:
    """Delete a room; refused while it has current or upcoming bookings."""
    room_admin.delete_room(repo, room_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# External calendars
# =============================================================================


@router.get("/ical-feeds")
def get_ical_feeds(
    room_id: Optional[str] = Query(None, alias="roomId"),
    db_engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    with db_engine.connect() as conn:
        return camelize_all(list_ical_feeds(conn, room_id))


@router.post("/ical-feeds", status_code=status.HTTP_201_CREATED)
def register_ical_feed(
    payload: IcalFeedPayload, db_engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    with db_engine.begin() as conn:
        if get_room(conn, payload.room_id) is None:
            raise NotFoundError(f"Room {payload.room_id} not found")
        feed_id = add_ical_feed(conn, payload.room_id, payload.channel.upper(), payload.url)
    logger.info("ical_feed_registered", feed_id=feed_id, room_id=payload.room_id)
    return {"id": feed_id, "roomId": payload.room_id, "channel": payload.channel.upper()}


@router.post("/ical-feeds/import")
def import_feeds(repo: SyncingRepository = Depends(get_repository)) -> dict[str, Any]:
    return {"feeds": import_all_feeds(repo)}


@router.post("/ical-feeds/{feed_id}/import")
def import_feed(feed_id: int, repo: SyncingRepository = Depends(get_repository)) -> dict[str, Any]:
    return {"feedId": feed_id, **import_ical_feed(repo, feed_id)}


# =============================================================================
# Sync log
# =============================================================================


@router.get("/sync-logs")
def get_sync_logs(
    direction: Optional[str] = Query(None, description="INCOMING or OUTGOING"),
    log_status: Optional[str] = Query(None, alias="status", description="SUCCESS, ERROR, SKIPPED"),
    source: Optional[str] = Query(None),
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    db_engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Page through the sync log, newest first, with a 24-hour status summary.

    ``limit`` is capped at 200.
    """
    limit = min(limit, MAX_PAGE_SIZE)
    with db_engine.connect() as conn:
        logs, total = list_webhook_logs(
            conn,
            direction=direction.upper() if direction else None,
            status=log_status.upper() if log_status else None,
            source=source.upper() if source else None,
            limit=limit,
            offset=offset,
        )
        summary = summarize_statuses_since(conn, utc_now() - timedelta(hours=24))

    return {
        "logs": camelize_all(logs),
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + len(logs) < total,
        },
        "summary24h": {
            "success": summary.get("success", 0),
            "error": summary.get("error", 0),
            "skipped": summary.get("skipped", 0),
        },
    }


@router.delete("/sync-logs")
def prune_sync_logs(
    older_than: int = Query(30, alias="olderThan", ge=1, description="Age in days"),
    db_engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    with db_engine.begin() as conn:
        deleted = prune_webhook_logs(conn, utc_now() - timedelta(days=older_than))
    logger.info("sync_logs_pruned", older_than_days=older_than, deleted=deleted)
    return {"deleted": deleted, "olderThanDays": older_than}
