from datetime import datetime

from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from booking_sync.models.ical_feeds import IcalFeed


def add_ical_feed(conn: Connection, room_id: str, channel: str, url: str) -> int:
    result = conn.execute(insert(IcalFeed).values(room_id=room_id, channel=channel, url=url))
    return result.inserted_primary_key[0]


def mark_feed_synced(conn: Connection, feed_id: int, synced_at: datetime) -> None:
    conn.execute(update(IcalFeed).where(IcalFeed.id == feed_id).values(last_synced_at=synced_at))
