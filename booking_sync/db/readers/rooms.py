from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from booking_sync.models.rooms import Room


def get_room(conn: Connection, room_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch one room by its CRM record id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        room_id (str): Room id.

    Returns:
        Optional[dict[str, Any]]: Room row as a dict, or None if not found
    """
    row = conn.execute(select(Room).where(Room.id == room_id)).mappings().first()
    return dict(row) if row else None


def get_room_by_external_id(conn: Connection, external_id: str) -> Optional[dict[str, Any]]:
    """
    Resolve a channel-manager unit id to the local room.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        external_id (str): Channel manager room/unit id.

    Returns:
        Optional[dict[str, Any]]: Room row as a dict, or None when no room is mapped
    """
    row = (
        conn.execute(select(Room).where(Room.external_id == str(external_id)))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def list_rooms(conn: Connection, property_id: Optional[str] = None) -> list[dict[str, Any]]:
    """List rooms ordered by id, optionally scoped to one property."""
    stmt = select(Room).order_by(Room.id)
    if property_id:
        stmt = stmt.where(Room.property_id == property_id)
    return [dict(r) for r in conn.execute(stmt).mappings().all()]
