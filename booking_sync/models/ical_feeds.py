from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from booking_sync.models.base import Base


class IcalFeed(Base):
    """External calendar (Airbnb, Booking.com, ...) imported into one room."""

    __tablename__ = "ical_feeds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(64), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    channel = Column(String(50), nullable=False)
    url = Column(Text, nullable=False)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
