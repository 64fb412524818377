from decimal import Decimal
from typing import Any, Optional

from pydantic import Field

from booking_sync.schemas.bookings import CamelModel


class RoomCreatePayload(CamelModel):
    """
    Schema for creating a room.
    """

    number: str = Field(..., min_length=1, description="Room number or short label")
    name: Optional[str] = None
    description: Optional[str] = None
    room_type: Optional[str] = Field(None, alias="roomType")
    property_id: Optional[str] = Field(None, alias="propertyId")
    base_price: Decimal = Field(Decimal("0"), alias="basePrice", ge=0)
    capacity: int = Field(2, ge=1)
    max_adults: int = Field(2, alias="maxAdults", ge=1)
    max_children: int = Field(0, alias="maxChildren", ge=0)
    min_nights: int = Field(1, alias="minNights", ge=1)
    amenities: Optional[list[Any]] = None
    external_id: Optional[str] = Field(None, alias="externalId", description="Channel room id")

    def to_values(self) -> dict[str, Any]:
        # Defaults are part of a new room
        return self.model_dump()


class RoomUpdatePayload(CamelModel):
    """
    Schema for updating a room. All fields are optional.
    """

    number: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = None
    description: Optional[str] = None
    room_type: Optional[str] = Field(None, alias="roomType")
    base_price: Optional[Decimal] = Field(None, alias="basePrice", ge=0)
    capacity: Optional[int] = Field(None, ge=1)
    max_adults: Optional[int] = Field(None, alias="maxAdults", ge=1)
    max_children: Optional[int] = Field(None, alias="maxChildren", ge=0)
    min_nights: Optional[int] = Field(None, alias="minNights", ge=1)
    amenities: Optional[list[Any]] = None
    external_id: Optional[str] = Field(None, alias="externalId")
