"""SQLAlchemy models for discount vouchers and their redemption history."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.sql import func

from booking_sync.models.base import Base

PERCENTAGE = "percentage"
FIXED = "fixed"


class VoucherCode(Base):
    """
    ORM model for a discount code.

    ``used_count`` only ever grows through redemption and the check constraint
    keeps it from passing ``max_uses`` even if two redemptions race.
    """

    __tablename__ = "voucher_codes"

    id = Column(String(64), primary_key=True)
    code = Column(String(64), nullable=False, unique=True)
    discount_type = Column(String(20), nullable=False, default=PERCENTAGE)
    discount_value = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=True)
    min_nights = Column(Integer, nullable=True)
    min_booking_value = Column(Numeric(10, 2), nullable=True)
    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, server_default=text("0"), default=0)
    valid_from = Column(Date, nullable=True)
    valid_until = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default=text("TRUE"), default=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "max_uses IS NULL OR used_count <= max_uses", name="ck_voucher_codes_usage_cap"
        ),
    )


class VoucherRedemption(Base):
    __tablename__ = "voucher_redemptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    voucher_id = Column(
        String(64), ForeignKey("voucher_codes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_id = Column(
        String(64), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    discount_applied = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
