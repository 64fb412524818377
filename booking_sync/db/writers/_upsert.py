"""
Generic upsert helper with IS DISTINCT FROM optimization.

Shared by every writer that mirrors external records into the local cache.
Works on PostgreSQL and SQLite, which both support ``ON CONFLICT DO UPDATE``.
"""

from typing import Any, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection
from sqlalchemy.sql import func


def dialect_insert(conn: Connection, table: type) -> Any:
    """Return an ``INSERT`` construct that supports ``on_conflict_*`` for this connection."""
    if conn.dialect.name == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


def upsert_with_distinct_check(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_columns: Sequence[str],
    update_columns: Optional[Sequence[str]] = None,
) -> None:
    """
    Insert rows, or update the existing row when any tracked column changed.

    Only rows whose values actually differ are written, so ``updated_at`` does
    not move on a no-op reconciliation pass.

    Args:
        conn: Active database connection (within transaction)
        table: ORM model class (e.g. Booking, Room, PriceRule)
        rows: Row dicts to upsert; every dict must carry the same keys
        conflict_columns: Columns of the unique constraint to conflict on
        update_columns: Columns to overwrite on conflict (default: every
            column present in the rows except the conflict columns)
    """
    if not rows:
        return

    if update_columns is None:
        update_columns = [c for c in rows[0].keys() if c not in conflict_columns]
    update_columns = [c for c in update_columns if c != "updated_at"]

    stmt = dialect_insert(conn, table).values(rows)

    if not update_columns:
        conn.execute(stmt.on_conflict_do_nothing(index_elements=list(conflict_columns)))
        return

    set_dict: dict[str, Any] = {col: getattr(stmt.excluded, col) for col in update_columns}
    if "updated_at" in table.__table__.c:
        set_dict["updated_at"] = func.now()

    # NULL-safe comparison so NULL -> value and value -> NULL both count as a change
    distinct_check = or_(
        *(getattr(table, col).is_distinct_from(getattr(stmt.excluded, col)) for col in update_columns)
    )

    stmt = stmt.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_=set_dict,
        where=distinct_check,
    )
    conn.execute(stmt)
