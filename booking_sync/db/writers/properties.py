from typing import Any, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from booking_sync.models.properties import Property
from booking_sync.utils.ids import CHANNEL_PROPERTY_PREFIX, provisional_id


def upsert_channel_property(conn: Connection, values: dict[str, Any]) -> str:
    """
    Create or refresh a property by its channel-manager id.

    Properties first seen through the channel manager get a ``ch-`` prefixed
    local id.

    Args:
        conn (Connection): Connection inside the caller's transaction.
        values (dict[str, Any]): Property fields, ``external_id`` required.

    Returns:
        str: Local property id
    """
    external_id = str(values["external_id"])
    existing = conn.execute(
        select(Property.id).where(Property.external_id == external_id)
    ).scalar()
    fields = {k: v for k, v in values.items() if k != "id"}

    if existing:
        conn.execute(update(Property).where(Property.id == existing).values(**fields))
        return existing

    property_id = values.get("id") or provisional_id(CHANNEL_PROPERTY_PREFIX, external_id)
    conn.execute(insert(Property).values(id=property_id, **fields))
    return property_id


def store_channel_credentials(
    conn: Connection,
    property_id: str,
    refresh_token: str,
    invite_code: Optional[str] = None,
) -> None:
    values: dict[str, Any] = {"channel_refresh_token": refresh_token}
    if invite_code:
        values["channel_invite_code"] = invite_code
    conn.execute(update(Property).where(Property.id == property_id).values(**values))


def insert_default_property(conn: Connection, property_id: str, name: str) -> str:
    conn.execute(insert(Property).values(id=property_id, name=name))
    return property_id
