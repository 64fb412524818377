from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import delete, insert
from sqlalchemy.engine import Connection, Engine

from booking_sync.config import WEBHOOK_PAYLOAD_EXCERPT_CHARS
from booking_sync.models.webhook_logs import WebhookLog

logger = structlog.get_logger(__name__)


def excerpt(raw: Optional[str], limit: int = WEBHOOK_PAYLOAD_EXCERPT_CHARS) -> Optional[str]:
    """Truncate a raw payload for storage."""
    if raw is None:
        return None
    return raw[:limit]


def write_webhook_log(
    engine: Engine,
    direction: str,
    source: str,
    event: str,
    status: str,
    booking_id: Optional[str] = None,
    external_id: Optional[str] = None,
    room_id: Optional[str] = None,
    payload: Optional[str] = None,
    error: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Append one row to the sync audit log in its own transaction.

    Never raises: a failure to persist the audit row is logged and reported
    through the return value, so it cannot abort the operation being audited.

    Args:
        engine: SQLAlchemy Engine
        direction: INCOMING or OUTGOING
        source: Source system tag (BEDS24, CRM, ICAL)
        event: Event code (BOOKING_CREATE, PARSE_FAILED, ...)
        status: SUCCESS, ERROR or SKIPPED
        booking_id: Local booking id, when known
        external_id: Channel-manager booking id, when known
        room_id: Local or channel room id, when known
        payload: Raw payload, truncated before storage
        error: Error text
        details: Structured context

    Returns:
        bool: True if the row was written
    """
    row = {
        "direction": direction,
        "source": source,
        "event": event,
        "status": status,
        "booking_id": booking_id,
        "external_id": str(external_id) if external_id is not None else None,
        "room_id": str(room_id) if room_id is not None else None,
        "payload": excerpt(payload),
        "error": excerpt(error),
        "details": details,
    }
    try:
        with engine.begin() as conn:
            conn.execute(insert(WebhookLog).values(**row))
        return True
    except Exception as e:
        logger.error(
            "webhook_log_write_failed",
            direction=direction,
            source=source,
            event=event,
            status=status,
            error=str(e),
        )
        return False


def prune_webhook_logs(conn: Connection, older_than: datetime) -> int:
    """Delete log rows created before ``older_than``. Returns the number deleted."""
    result = conn.execute(delete(WebhookLog).where(WebhookLog.created_at < older_than))
    return result.rowcount
