from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Primary keys of CRM-backed entities (rooms, bookings, vouchers) are the
    CRM's own record identifiers, so the local cache and the CRM are joinable
    without a mapping table.
    """

    pass
