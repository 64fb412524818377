from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from booking_sync.models.ical_feeds import IcalFeed


def get_ical_feed(conn: Connection, feed_id: int) -> Optional[dict[str, Any]]:
    row = conn.execute(select(IcalFeed).where(IcalFeed.id == feed_id)).mappings().first()
    return dict(row) if row else None


def list_ical_feeds(conn: Connection, room_id: Optional[str] = None) -> list[dict[str, Any]]:
    stmt = select(IcalFeed).order_by(IcalFeed.id)
    if room_id:
        stmt = stmt.where(IcalFeed.room_id == room_id)
    return [dict(r) for r in conn.execute(stmt).mappings().all()]
