from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from booking_sync.models.webhook_logs import INCOMING, WebhookLog

MAX_PAGE_SIZE = 200


def list_webhook_logs(
    conn: Connection,
    direction: Optional[str] = None,
    status: Optional[str] = None,
    source: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """
    Page through sync logs, newest first.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        direction (Optional[str]): INCOMING / OUTGOING filter, None for all.
        status (Optional[str]): SUCCESS / ERROR / SKIPPED filter, None for all.
        source (Optional[str]): Source system filter, None for all.
        limit (int): Page size, capped at 200.
        offset (int): Rows to skip.

    Returns:
        tuple[list[dict[str, Any]], int]: The page and the total matching count
    """
    filters = []
    if direction:
        filters.append(WebhookLog.direction == direction)
    if status:
        filters.append(WebhookLog.status == status)
    if source:
        filters.append(WebhookLog.source == source)

    limit = max(1, min(limit, MAX_PAGE_SIZE))
    stmt = (
        select(WebhookLog)
        .where(*filters)
        .order_by(WebhookLog.created_at.desc(), WebhookLog.id.desc())
        .limit(limit)
        .offset(max(offset, 0))
    )
    logs = [dict(r) for r in conn.execute(stmt).mappings().all()]
    total = conn.execute(select(func.count()).select_from(WebhookLog).where(*filters)).scalar_one()
    return logs, total


def summarize_statuses_since(conn: Connection, since: datetime) -> dict[str, int]:
    """Count logs per status (lower-cased) created at or after ``since``."""
    stmt = (
        select(WebhookLog.status, func.count())
        .where(WebhookLog.created_at >= since)
        .group_by(WebhookLog.status)
    )
    return {status.lower(): count for status, count in conn.execute(stmt).all()}


def list_recent_incoming(conn: Connection, source: str, limit: int = 20) -> list[dict[str, Any]]:
    stmt = (
        select(WebhookLog)
        .where(WebhookLog.source == source, WebhookLog.direction == INCOMING)
        .order_by(WebhookLog.created_at.desc(), WebhookLog.id.desc())
        .limit(limit)
    )
    return [dict(r) for r in conn.execute(stmt).mappings().all()]
