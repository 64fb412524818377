from datetime import date
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from booking_sync.models.price_rules import PriceRule


def list_price_rules(
    conn: Connection,
    start: date,
    end: date,
    room_ids: Optional[Iterable[str]] = None,
) -> dict[str, dict[date, dict[str, Any]]]:
    """
    Load price rules for every date in ``[start, end)``, grouped by room and date.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        start (date): First date (inclusive).
        end (date): Last date (exclusive).
        room_ids (Optional[Iterable[str]]): Restrict to these rooms.

    Returns:
        dict: ``{room_id: {date: {"price", "is_available", "min_stay"}}}``
    """
    stmt = select(
        PriceRule.room_id,
        PriceRule.date,
        PriceRule.price,
        PriceRule.is_available,
        PriceRule.min_stay,
    ).where(PriceRule.date >= start, PriceRule.date < end)
    if room_ids is not None:
        stmt = stmt.where(PriceRule.room_id.in_(list(room_ids)))

    grouped: dict[str, dict[date, dict[str, Any]]] = {}
    for row in conn.execute(stmt).mappings():
        grouped.setdefault(row["room_id"], {})[row["date"]] = {
            "price": row["price"],
            "is_available": row["is_available"],
            "min_stay": row["min_stay"],
        }
    return grouped
