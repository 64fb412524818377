"""SQLAlchemy model for guest profiles, keyed by email."""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from booking_sync.models.base import Base


class Guest(Base):
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(64), nullable=True)
    language = Column(String(8), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
