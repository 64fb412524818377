"""SQLAlchemy model for physical properties (sites that own rooms)."""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from booking_sync.models.base import Base


class Property(Base):
    """
    ORM model for a property.

    ``external_id`` is the channel manager's property id. The long-lived
    channel credential (refresh token obtained from a one-time invite code)
    is stored here and exchanged for short-lived access tokens on demand.
    """

    __tablename__ = "properties"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(500), nullable=True)
    email = Column(String(255), nullable=True)
    external_id = Column(String(64), nullable=True, unique=True)
    channel_invite_code = Column(String(255), nullable=True)
    channel_refresh_token = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
