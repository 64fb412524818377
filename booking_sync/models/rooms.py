"""SQLAlchemy model for bookable rooms."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from booking_sync.models.base import Base, JSONType


class Room(Base):
    """
    ORM model for a bookable unit.

    ``id`` is the CRM record id. ``external_id`` is the channel manager's unit
    id and is the join key used to route inbound webhook events, hence unique.
    """

    __tablename__ = "rooms"

    id = Column(String(64), primary_key=True)
    property_id = Column(
        String(64), ForeignKey("properties.id", ondelete="CASCADE"), nullable=True, index=True
    )
    number = Column(String(50), nullable=False)
    name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    room_type = Column(String(100), nullable=True)
    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    capacity = Column(Integer, nullable=False, default=2)
    max_adults = Column(Integer, nullable=False, default=2)
    max_children = Column(Integer, nullable=False, default=0)
    min_nights = Column(Integer, nullable=False, default=1)
    amenities = Column(JSONType, nullable=True)
    external_id = Column(String(64), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
