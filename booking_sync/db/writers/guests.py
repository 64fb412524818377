from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from booking_sync.db.writers._upsert import upsert_with_distinct_check
from booking_sync.models.guests import Guest


def upsert_guest(
    conn: Connection,
    email: str,
    name: str,
    phone: Optional[str] = None,
    language: Optional[str] = None,
) -> int:
    """
    Create or refresh a guest profile keyed by email.

    Phone and language only overwrite stored values when provided.

    Returns:
        int: The guest id
    """
    email = email.strip().lower()
    row: dict[str, object] = {"email": email, "name": name}
    if phone:
        row["phone"] = phone
    if language:
        row["language"] = language

    upsert_with_distinct_check(conn, Guest, [row], conflict_columns=["email"])
    return conn.execute(select(Guest.id).where(Guest.email == email)).scalar_one()
