"""Room administration through the write-through repository."""

from typing import Any

from booking_sync.db.readers.bookings import has_active_bookings_from
from booking_sync.db.readers.properties import get_property
from booking_sync.db.readers.rooms import get_room
from booking_sync.errors import ConflictError, NotFoundError, ValidationError
from booking_sync.services.repository import SyncingRepository
from booking_sync.utils.datetime import local_today


def _check_limits(room: dict[str, Any]) -> None:
    if room.get("capacity", 1) < 1:
        raise ValidationError("capacity must be at least 1")
    if room.get("min_nights", 1) < 1:
        raise ValidationError("minNights must be at least 1")
    if room.get("max_adults", 1) < 1:
        raise ValidationError("maxAdults must be at least 1")


def create_room(repo: SyncingRepository, values: dict[str, Any]) -> dict[str, Any]:
    property_id = values.get("property_id")
    if property_id:
        with repo.engine.connect() as conn:
            if get_property(conn, property_id) is None:
                raise NotFoundError(f"Property {property_id} not found")
    _check_limits(values)
    return repo.create_room(values)


def update_room(repo: SyncingRepository, room_id: str, changes: dict[str, Any]) -> dict[str, Any]:
    with repo.engine.connect() as conn:
        existing = get_room(conn, room_id)
    if existing is None:
        raise NotFoundError(f"Room {room_id} not found")

    changes = {k: v for k, v in changes.items() if existing.get(k) != v}
    if changes:
        _check_limits({**existing, **changes})
        repo.update_room(room_id, changes)
    return {**existing, **changes}


def delete_room(repo: SyncingRepository, room_id: str) -> None:
    """
    Delete a room from the CRM and the cache.

    Refused while a non-cancelled booking still checks out today or later.
    """
    with repo.engine.connect() as conn:
        if get_room(conn, room_id) is None:
            raise NotFoundError(f"Room {room_id} not found")
        active = has_active_bookings_from(conn, room_id, local_today())
    if active:
        raise ConflictError(
            "Room has current or upcoming bookings; cancel or move them first",
            kind=ConflictError.ACTIVE_RECORD,
        )
    repo.delete_room(room_id)
