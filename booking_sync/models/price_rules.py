from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.sql import func

from booking_sync.models.base import Base


class PriceRule(Base):
    """
    Date-specific override of a room's nightly price.

    May also close the date (``is_available=False``) or raise the minimum
    stay for any stay that includes it (``min_stay``). Unique per room/date.
    """

    __tablename__ = "price_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(64), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    price = Column(Numeric(10, 2), nullable=True)
    is_available = Column(Boolean, nullable=False, server_default=text("TRUE"), default=True)
    min_stay = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (UniqueConstraint("room_id", "date", name="uq_price_rules_room_date"),)
