"""SQLAlchemy model for the append-only synchronization audit log."""

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from booking_sync.models.base import Base, JSONType

INCOMING = "INCOMING"
OUTGOING = "OUTGOING"

SUCCESS = "SUCCESS"
ERROR = "ERROR"
SKIPPED = "SKIPPED"


class WebhookLog(Base):
    """
    One row per inbound or outbound synchronization attempt.

    Operators read this table; business logic never does. ``payload`` holds a
    truncated raw excerpt, ``details`` any structured context worth keeping.
    """

    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    direction = Column(String(10), nullable=False)
    source = Column(String(20), nullable=False)
    event = Column(String(50), nullable=False)
    status = Column(String(10), nullable=False, index=True)
    booking_id = Column(String(64), nullable=True)
    external_id = Column(String(255), nullable=True)
    room_id = Column(String(64), nullable=True)
    payload = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    details = Column(JSONType, nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
