from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from booking_sync.models.properties import Property
from booking_sync.models.rooms import Room


def get_property(conn: Connection, property_id: str) -> Optional[dict[str, Any]]:
    row = conn.execute(select(Property).where(Property.id == property_id)).mappings().first()
    return dict(row) if row else None


def get_property_for_room(conn: Connection, room_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch the property that owns a room.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        room_id (str): Room id.

    Returns:
        Optional[dict[str, Any]]: Property row, or None if the room has no property
    """
    stmt = select(Property).join(Room, Room.property_id == Property.id).where(Room.id == room_id)
    row = conn.execute(stmt).mappings().first()
    return dict(row) if row else None


def get_property_with_channel_credentials(conn: Connection) -> Optional[dict[str, Any]]:
    """First property holding a channel refresh token or invite code."""
    stmt = (
        select(Property)
        .where(
            (Property.channel_refresh_token.is_not(None))
            | (Property.channel_invite_code.is_not(None))
        )
        .order_by(Property.created_at, Property.id)
    )
    row = conn.execute(stmt).mappings().first()
    return dict(row) if row else None


def get_first_property(conn: Connection) -> Optional[dict[str, Any]]:
    row = conn.execute(select(Property).order_by(Property.created_at, Property.id)).mappings().first()
    return dict(row) if row else None


def list_properties(conn: Connection) -> list[dict[str, Any]]:
    return [dict(r) for r in conn.execute(select(Property).order_by(Property.id)).mappings().all()]
