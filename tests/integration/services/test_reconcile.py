"""
Integration tests for CRM reconciliation (services/reconcile.py).
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable

import pytest
from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from booking_sync.db.readers.bookings import get_booking
from booking_sync.db.readers.rooms import get_room
from booking_sync.errors import ValidationError
from booking_sync.models.bookings import Booking, BookingNight
from booking_sync.services.reconcile import (
    pull_bookings,
    pull_rooms,
    push_local_bookings,
    sync_with_crm,
)
from booking_sync.services.repository import SyncingRepository

ROOM_RECORD = {
    "id": "r-1",
    "Name": "101 - Garden",
    "Room_Name": "Garden",
    "Base_Price": 250,
    "Capacity": 3,
    "Max_Adults": 2,
    "Beds24_Room_ID": "5501",
}

BOOKING_RECORDS = [
    {
        "id": "b-1",
        "Name": "Anna Nowak - 101",
        "Room": {"id": "r-1", "name": "101 - Garden"},
        "Guest": {"id": "c-1", "name": "Anna Nowak", "Email": "anna@example.com"},
        "Check_In": "2026-11-10",
        "Check_Out": "2026-11-12",
        "Total_Price": 500,
        "Status": "CONFIRMED",
        "Source_Channel": "WEBSITE",
    },
    {"id": "b-no-dates", "Room": {"id": "r-1"}},
    {
        "id": "b-orphan",
        "Room": {"id": "r-unknown"},
        "Check_In": "2026-11-10",
        "Check_Out": "2026-11-12",
    },
]


def _count(engine: Engine, model: type) -> int:
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(model)).scalar_one()


@pytest.mark.integration
def test_pull_rooms_attaches_default_property(repo: SyncingRepository, remote: Any) -> None:
    """Test that CRM rooms are cached under a default property created on first pull."""
    remote.room_records = [ROOM_RECORD]

    result = pull_rooms(repo, dry_run=False)

    assert result == {"fetched": 1, "synced": 1, "failed": 0}
    with repo.engine.connect() as conn:
        room = get_room(conn, "r-1")
    assert room is not None
    assert room["number"] == "101"
    assert room["name"] == "Garden"
    assert room["property_id"] == "main"
    assert room["external_id"] == "5501"


@pytest.mark.integration
def test_pull_bookings_is_idempotent_and_counts_bad_records(
    repo: SyncingRepository, remote: Any
) -> None:
    """Test that repeating a pull changes nothing and bad records are skipped, not fatal."""
    remote.room_records = [ROOM_RECORD]
    remote.booking_records = BOOKING_RECORDS
    pull_rooms(repo, dry_run=False)

    first = pull_bookings(repo, dry_run=False)
    second = pull_bookings(repo, dry_run=False)

    assert first == {"fetched": 3, "synced": 1, "failed": 2}
    assert second == first
    assert _count(repo.engine, Booking) == 1
    assert _count(repo.engine, BookingNight) == 2

    with repo.engine.connect() as conn:
        booking = get_booking(conn, "b-1")
    assert booking is not None
    assert booking["guest_name"] == "Anna Nowak"
    assert booking["check_out"] == date(2026, 11, 12)
    assert booking["source"] == "WEBSITE"


@pytest.mark.integration
def test_pull_reflects_crm_side_changes(repo: SyncingRepository, remote: Any) -> None:
    """Test that a stay moved in the CRM moves its occupied nights on the next pull."""
    remote.room_records = [ROOM_RECORD]
    remote.booking_records = [dict(BOOKING_RECORDS[0])]
    pull_rooms(repo, dry_run=False)
    pull_bookings(repo, dry_run=False)

    remote.booking_records[0]["Check_Out"] = "2026-11-15"
    pull_bookings(repo, dry_run=False)

    assert _count(repo.engine, BookingNight) == 5


@pytest.mark.integration
def test_dry_run_writes_nothing(repo: SyncingRepository, remote: Any) -> None:
    remote.room_records = [ROOM_RECORD]
    remote.booking_records = BOOKING_RECORDS

    rooms = pull_rooms(repo, dry_run=True)
    bookings = pull_bookings(repo, dry_run=True)

    assert rooms["synced"] == 1
    # Without writes the room lookup is skipped, so only the dateless record fails
    assert bookings == {"fetched": 3, "synced": 2, "failed": 1}
    with repo.engine.connect() as conn:
        assert get_room(conn, "r-1") is None
    assert _count(repo.engine, Booking) == 0


@pytest.mark.integration
def test_push_promotes_provisional_bookings(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    """Test that import- bookings are created in the CRM and re-keyed onto the CRM id."""
    room = make_room()
    make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 12), id="import-900")
    make_booking(room["id"], date(2026, 11, 20), date(2026, 11, 22), id="crm-existing")

    result = push_local_bookings(repo, dry_run=False)

    assert result == {"pending": 1, "pushed": 1, "failed": 0}
    assert remote.operations() == ["create_booking"]
    with repo.engine.connect() as conn:
        assert get_booking(conn, "import-900") is None
        promoted = get_booking(conn, "crm-1")
        nights = conn.execute(
            select(BookingNight.night).where(BookingNight.booking_id == "crm-1")
        ).scalars().all()
    assert promoted is not None
    assert sorted(nights) == [date(2026, 11, 10), date(2026, 11, 11)]


@pytest.mark.integration
def test_push_failure_keeps_provisional_booking(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    room = make_room()
    make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 12), id="ical-x@airbnb.com")
    remote.fail_on.add("create_booking")

    result = push_local_bookings(repo, dry_run=False)

    assert result == {"pending": 1, "pushed": 0, "failed": 1}
    with repo.engine.connect() as conn:
        assert get_booking(conn, "ical-x@airbnb.com") is not None


@pytest.mark.integration
def test_sync_with_crm_pushes_before_pulling(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    room = make_room()
    make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 12), id="import-1")

    result = sync_with_crm(repo, "all")

    assert remote.operations() == ["list_rooms", "create_booking", "list_bookings"]
    assert result["entity"] == "all"
    assert result["pushed"]["pushed"] == 1
    assert result["rooms"] == {"fetched": 0, "synced": 0, "failed": 0}


@pytest.mark.integration
def test_sync_with_crm_rejects_unknown_entity(repo: SyncingRepository) -> None:
    with pytest.raises(ValidationError):
        sync_with_crm(repo, "vouchers")
