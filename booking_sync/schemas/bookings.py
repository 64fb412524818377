from datetime import date
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from booking_sync.models.bookings import BOOKING_STATUSES

BookingStatus = Literal[BOOKING_STATUSES]  # type: ignore[valid-type]


class CamelModel(BaseModel):
    """Accepts the camelCase keys the dashboard and website send."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_values(self) -> dict[str, Any]:
        """Fields the client actually sent, keyed by column name."""
        return self.model_dump(exclude_unset=True)


class BookingCreatePayload(CamelModel):
    """
    Schema for creating a booking from the admin dashboard.
    """

    room_id: str = Field(..., alias="roomId", description="Room id")
    guest_name: str = Field(..., alias="guestName", min_length=1)
    guest_email: Optional[str] = Field(None, alias="guestEmail")
    guest_phone: Optional[str] = Field(None, alias="guestPhone")
    check_in: date = Field(..., alias="checkIn", description="First night")
    check_out: date = Field(..., alias="checkOut", description="Checkout day (not occupied)")
    num_adults: Optional[int] = Field(None, alias="numAdults", ge=0)
    num_children: Optional[int] = Field(None, alias="numChildren", ge=0)
    total_price: Optional[Decimal] = Field(None, alias="totalPrice", ge=0)
    status: Optional[BookingStatus] = None
    source: Optional[str] = None
    notes: Optional[str] = None


class BookingUpdatePayload(CamelModel):
    """
    Schema for a partial booking update. All fields are optional.
    """

    room_id: Optional[str] = Field(None, alias="roomId")
    guest_name: Optional[str] = Field(None, alias="guestName", min_length=1)
    guest_email: Optional[str] = Field(None, alias="guestEmail")
    guest_phone: Optional[str] = Field(None, alias="guestPhone")
    check_in: Optional[date] = Field(None, alias="checkIn")
    check_out: Optional[date] = Field(None, alias="checkOut")
    num_adults: Optional[int] = Field(None, alias="numAdults", ge=0)
    num_children: Optional[int] = Field(None, alias="numChildren", ge=0)
    total_price: Optional[Decimal] = Field(None, alias="totalPrice", ge=0)
    status: Optional[BookingStatus] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    payment_status: Optional[str] = Field(None, alias="paymentStatus")


class PublicBookingPayload(CamelModel):
    """
    Schema for a paid booking made on the website.
    """

    room_id: str = Field(..., alias="roomId")
    guest_name: str = Field(..., alias="guestName", min_length=1)
    guest_email: str = Field(..., alias="guestEmail", min_length=3)
    guest_phone: Optional[str] = Field(None, alias="guestPhone")
    num_adults: int = Field(2, alias="numAdults", ge=0)
    num_children: int = Field(0, alias="numChildren", ge=0)
    guest_ages: Optional[list[int]] = Field(None, alias="guestAges")
    check_in: date = Field(..., alias="checkIn")
    check_out: date = Field(..., alias="checkOut")
    total_price: Decimal = Field(..., alias="totalPrice", ge=0)
    voucher_code: Optional[str] = Field(None, alias="voucherCode")
    deposit_amount: Optional[Decimal] = Field(None, alias="depositAmount", ge=0)
    balance_amount: Optional[Decimal] = Field(None, alias="balanceAmount", ge=0)
    payment_intent_id: Optional[str] = Field(None, alias="paymentIntentId")
    notes: Optional[str] = None
    locale: Optional[str] = Field(None, max_length=8)


class VoucherValidatePayload(CamelModel):
    code: str = Field(..., min_length=1)
    total_amount: Optional[Decimal] = Field(None, alias="totalAmount", ge=0)
    nights: Optional[int] = Field(None, ge=0)
    check_in: Optional[date] = Field(None, alias="checkIn")
    check_out: Optional[date] = Field(None, alias="checkOut")

    @model_validator(mode="after")
    def _nights_from_dates(self) -> "VoucherValidatePayload":
        if self.nights is None and self.check_in and self.check_out:
            self.nights = (self.check_out - self.check_in).days
        return self
