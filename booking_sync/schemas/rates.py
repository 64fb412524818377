from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import Field

from booking_sync.schemas.bookings import CamelModel

ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]


class RatePayload(CamelModel):
    room_id: str = Field(..., alias="roomId")
    day: date = Field(..., alias="date")
    price: Decimal = Field(..., ge=0)


class MassUpdatePayload(CamelModel):
    """
    Schema for a rate mass update over ``[startDate, endDate]``.
    """

    room_id: str = Field(..., alias="roomId")
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")
    price: Decimal = Field(..., ge=0)
    days_of_week: list[int] = Field(
        default_factory=lambda: list(ALL_DAYS),
        alias="daysOfWeek",
        description="0=Sunday .. 6=Saturday",
    )
    is_available: Optional[bool] = Field(None, alias="isAvailable")
    min_stay: Optional[int] = Field(None, alias="minStay", ge=1)
