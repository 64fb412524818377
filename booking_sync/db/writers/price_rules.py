from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.engine import Connection

from booking_sync.db.writers._upsert import upsert_with_distinct_check
from booking_sync.models.price_rules import PriceRule


def upsert_price_rules(
    conn: Connection,
    room_id: str,
    dates: Iterable[date],
    price: Decimal,
    is_available: Optional[bool] = None,
    min_stay: Optional[int] = None,
) -> int:
    """
    Set the nightly price of a room for each date, in one statement.

    The caller's transaction makes the batch all-or-nothing. Availability and
    min-stay overrides are only written when given, so a plain rate edit
    never reopens a closed date.

    Args:
        conn (Connection): Connection inside the caller's transaction.
        room_id (str): Room id.
        dates (Iterable[date]): Dates to price.
        price (Decimal): Nightly price.
        is_available (Optional[bool]): Open/close override.
        min_stay (Optional[int]): Minimum stay override.

    Returns:
        int: Number of dates written
    """
    rows = []
    for day in dates:
        row = {"room_id": room_id, "date": day, "price": price}
        if is_available is not None:
            row["is_available"] = is_available
        if min_stay is not None:
            row["min_stay"] = min_stay
        rows.append(row)

    upsert_with_distinct_check(conn, PriceRule, rows, conflict_columns=["room_id", "date"])
    return len(rows)
