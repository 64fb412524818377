"""Channel-manager webhook receiver."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from booking_sync.config import CHANNEL_SOURCE
from booking_sync.db.readers.webhook_logs import list_recent_incoming
from booking_sync.dependencies import get_repository
from booking_sync.routes._helpers import camelize_all
from booking_sync.services.repository import SyncingRepository
from booking_sync.services.webhook import ingest_channel_webhook

router = APIRouter()
logger = structlog.get_logger(__name__)

RECENT_LOGS = 20


@router.post("/webhooks/channel-manager")
async def receive_channel_webhook(
    request: Request,
    repo: SyncingRepository = Depends(get_repository),
) -> JSONResponse:
    """
    Handle a booking event from the channel manager.

    The body is read as raw bytes whatever the Content-Type claims; JSON,
    form-encoded and key=value bodies are all accepted. Every delivery is
    logged to the sync log before the response is returned, and failures
    come back as a structured JSON error rather than a crash.

    Returns:
        JSONResponse: ``{"success", "providerBookingId", "roomId",
        "mappedStatus", "action"}`` or ``{"success": false, "event", "error"}``
    """
    raw_body = await request.body()
    content_type = request.headers.get("content-type")
    logger.info("webhook_received", content_type=content_type, size=len(raw_body))

    status_code, body = await run_in_threadpool(
        ingest_channel_webhook, repo, raw_body, content_type
    )
    return JSONResponse(status_code=status_code, content=body)


@router.get("/webhooks/channel-manager")
def webhook_status(
    logs: bool = Query(False, description="Include the latest incoming deliveries"),
    repo: SyncingRepository = Depends(get_repository),
) -> dict[str, Any]:
    """Reachability check for the channel manager, and a quick look at recent deliveries."""
    body: dict[str, Any] = {"status": "ok", "source": CHANNEL_SOURCE}
    if logs:
        with repo.engine.connect() as conn:
            body["logs"] = camelize_all(list_recent_incoming(conn, CHANNEL_SOURCE, RECENT_LOGS))
    return body
