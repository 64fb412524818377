"""SQLAlchemy models for bookings and their per-night occupancy markers."""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    String,
    Text,
)
from sqlalchemy.sql import func

from booking_sync.models.base import Base, JSONType

CANCELLED = "CANCELLED"
BLOCKED = "BLOCKED"
BOOKING_STATUSES = ("NEW", "REQUEST", "CONFIRMED", "DEPOSIT_PAID", BLOCKED, CANCELLED)

# Statuses that do not take part in overlap validation
NON_OCCUPYING_STATUSES = frozenset({CANCELLED, BLOCKED})


class Booking(Base):
    """
    ORM model for a reservation of one room over ``[check_in, check_out)``.

    ``id`` is the CRM record id (or a provisional ``import-`` id when an
    import could not be forwarded to the CRM). ``external_id`` is the channel
    manager's booking id and acts as the idempotency key for inbound events;
    its presence also marks the booking as already known to the channel
    manager, so it is never pushed back out.
    """

    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True)
    room_id = Column(String(64), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    booking_ref = Column(String(32), nullable=True, unique=True)
    guest_id = Column(Integer, ForeignKey("guests.id", ondelete="SET NULL"), nullable=True)
    guest_name = Column(String(255), nullable=False)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(64), nullable=True)
    num_adults = Column(Integer, nullable=False, default=2)
    num_children = Column(Integer, nullable=False, default=0)
    guest_ages = Column(JSONType, nullable=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=True)
    status = Column(String(20), nullable=False, default="CONFIRMED", index=True)
    source = Column(String(50), nullable=False, default="DIRECT")
    external_id = Column(String(255), nullable=True, unique=True)
    notes = Column(Text, nullable=True)
    voucher_code = Column(String(64), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=True)
    deposit_amount = Column(Numeric(10, 2), nullable=True)
    balance_amount = Column(Numeric(10, 2), nullable=True)
    balance_due_date = Column(Date, nullable=True)
    payment_status = Column(String(20), nullable=True)
    payment_intent_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (Index("ix_bookings_room_dates", "room_id", "check_in", "check_out"),)


class BookingNight(Base):
    """
    One row per occupied night of an occupying booking.

    The (room_id, night) primary key makes the database itself reject a
    second booking for the same night, even when two requests both passed
    application-level validation concurrently. Rows are written in the same
    transaction as the booking and exist only for statuses outside
    CANCELLED/BLOCKED.
    """

    __tablename__ = "booking_nights"

    room_id = Column(String(64), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    night = Column(Date, nullable=False)
    booking_id = Column(
        String(64), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )

    __table_args__ = (PrimaryKeyConstraint("room_id", "night", name="pk_booking_nights"),)
