from typing import Any

from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Connection

from booking_sync.db.writers._upsert import upsert_with_distinct_check
from booking_sync.models.rooms import Room

ROOM_COLUMNS = frozenset(Room.__table__.c.keys())


def room_row(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if k in ROOM_COLUMNS}


def insert_room(conn: Connection, values: dict[str, Any]) -> dict[str, Any]:
    row = room_row(values)
    conn.execute(insert(Room).values(**row))
    return row


def update_room(conn: Connection, room_id: str, values: dict[str, Any]) -> int:
    row = room_row(values)
    row.pop("id", None)
    if not row:
        return 0
    return conn.execute(update(Room).where(Room.id == room_id).values(**row)).rowcount


def delete_room(conn: Connection, room_id: str) -> int:
    """Delete a room. Bookings, price rules and feeds cascade with it."""
    return conn.execute(delete(Room).where(Room.id == room_id)).rowcount


def upsert_rooms(conn: Connection, rows: list[dict[str, Any]]) -> None:
    """
    Upsert rooms keyed by id (CRM pulls).

    ``property_id`` is only written on insert, so a pull never detaches a room
    from the property it was assigned to locally.
    """
    if not rows:
        return
    prepared = [room_row(r) for r in rows]
    update_columns = [c for c in prepared[0] if c not in ("id", "property_id", "created_at")]
    upsert_with_distinct_check(
        conn, Room, prepared, conflict_columns=["id"], update_columns=update_columns
    )
