from typing import Any

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import Response

from booking_sync.dependencies import get_repository
from booking_sync.routes._helpers import camelize
from booking_sync.schemas.bookings import BookingCreatePayload, BookingUpdatePayload
from booking_sync.services.bookings import (
    create_direct_booking,
    delete_existing_booking,
    update_existing_booking,
)
from booking_sync.services.repository import SyncingRepository

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/bookings", status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreatePayload,
    repo: SyncingRepository = Depends(get_repository),
) -> dict[str, Any]:
    """
    Create a booking from the dashboard.

    Validation runs before the CRM is called; the booking is cached locally
    only after the CRM accepted it.
    """
    return camelize(create_direct_booking(repo, payload.to_values()))


@router.patch("/bookings/{booking_id}")
def update_booking(
    booking_id: str,
    payload: BookingUpdatePayload,
    repo: SyncingRepository = Depends(get_repository),
) -> dict[str, Any]:
    return camelize(update_existing_booking(repo, booking_id, payload.to_values()))


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(
    booking_id: str,
    repo: SyncingRepository = Depends(get_repository),
) -> Response:
    """Delete a past, cancelled or blocked booking."""
    delete_existing_booking(repo, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
