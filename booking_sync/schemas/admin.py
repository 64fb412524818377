from typing import Optional

from pydantic import Field

from booking_sync.schemas.bookings import CamelModel


class ChannelImportPayload(CamelModel):
    """
    Schema for a channel-manager import. Wiping local bookings needs both flags.
    """

    invite_code: Optional[str] = Field(None, alias="inviteCode")
    clear_existing: bool = Field(False, alias="clearExisting")
    confirm: bool = False


class ChannelSetupPayload(CamelModel):
    invite_code: str = Field(..., alias="inviteCode", min_length=1)
    property_id: Optional[str] = Field(None, alias="propertyId")


class IcalFeedPayload(CamelModel):
    room_id: str = Field(..., alias="roomId")
    channel: str = Field(..., min_length=1, description="e.g. AIRBNB, BOOKING_COM")
    url: str = Field(..., min_length=8)
