"""
SQLAlchemy engine singleton.

PostgreSQL gets a production connection pool; SQLite (used for local runs and
tests) gets the defaults its pool implementation accepts.
"""

from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from booking_sync.config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")


def _engine_options(url: str) -> dict[str, Any]:
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One in-memory database shared by every thread
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 10,  # Connections kept open in the pool
        "max_overflow": 20,  # Extra connections when the pool is exhausted
        "pool_pre_ping": True,  # Detect stale connections before use
        "pool_recycle": 3600,
    }


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """SQLite ignores FOREIGN KEY/ON DELETE CASCADE unless asked per connection."""

    @event.listens_for(target, "connect")
    def _set_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine: Engine = create_engine(DATABASE_URL, future=True, echo=False, **_engine_options(DATABASE_URL))

if engine.dialect.name == "sqlite":
    enable_sqlite_foreign_keys(engine)


def check_engine_health() -> bool:
    """
    Check if the database is reachable.

    Used by the /ready endpoint before allowing traffic to the service.

    Returns:
        bool: True if a trivial query succeeds, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
