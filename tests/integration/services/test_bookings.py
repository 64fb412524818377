"""
Integration tests for direct booking updates, deletes and references
(services/bookings.py) and the /bookings routes.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from booking_sync.db.readers.bookings import get_booking
from booking_sync.errors import ConflictError, NotFoundError
from booking_sync.services.bookings import (
    delete_existing_booking,
    next_booking_ref,
    update_existing_booking,
)
from booking_sync.services.repository import SyncingRepository
from booking_sync.utils.datetime import local_today

# =============================================================================
# Booking references
# =============================================================================


@pytest.mark.integration
def test_next_booking_ref_continues_the_year(
    repo: SyncingRepository, make_room: Callable[..., Any], make_booking: Callable[..., Any]
) -> None:
    """Test that numbering continues from the highest reference of the same year only."""
    room = make_room()
    make_booking(room["id"], date(2026, 1, 1), date(2026, 1, 2), booking_ref="BKG-2026-0007")
    make_booking(room["id"], date(2026, 1, 3), date(2026, 1, 4), booking_ref="BKG-2026-0002")
    make_booking(room["id"], date(2025, 1, 1), date(2025, 1, 2), booking_ref="BKG-2025-0099")

    assert next_booking_ref(repo.engine, 2026, "BKG") == "BKG-2026-0008"
    assert next_booking_ref(repo.engine, 2027, "BKG") == "BKG-2027-0001"


@pytest.mark.integration
def test_next_booking_ref_past_four_digits(
    repo: SyncingRepository, make_room: Callable[..., Any], make_booking: Callable[..., Any]
) -> None:
    """Test that a five-digit reference still counts as the highest one issued."""
    room = make_room()
    make_booking(room["id"], date(2026, 1, 1), date(2026, 1, 2), booking_ref="BKG-2026-9999")
    make_booking(room["id"], date(2026, 1, 3), date(2026, 1, 4), booking_ref="BKG-2026-10000")

    assert next_booking_ref(repo.engine, 2026, "BKG") == "BKG-2026-10001"


# =============================================================================
# Updates
# =============================================================================


@pytest.mark.integration
def test_update_into_taken_dates_is_refused_before_crm(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    """Test that moving a booking onto another guest's nights never reaches the CRM."""
    room = make_room()
    make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 12), guest_name="Anna Nowak")
    moving = make_booking(room["id"], date(2026, 11, 20), date(2026, 11, 22))

    with pytest.raises(ConflictError) as exc_info:
        update_existing_booking(
            repo, moving["id"], {"check_in": date(2026, 11, 11), "check_out": date(2026, 11, 13)}
        )

    assert exc_info.value.kind == ConflictError.DATE_CONFLICT
    assert "Anna Nowak" in exc_info.value.message
    assert remote.calls == []


@pytest.mark.integration
def test_update_own_dates_does_not_conflict_with_itself(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    room = make_room()
    booking = make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 12))

    updated = update_existing_booking(repo, booking["id"], {"check_out": date(2026, 11, 14)})

    assert updated["check_out"] == date(2026, 11, 14)
    assert remote.calls == [("update_booking", booking["id"])]


@pytest.mark.integration
def test_notes_only_update_skips_admission(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    """Test that a booking over today's room limits can still get its notes edited."""
    room = make_room(max_adults=2)
    booking = make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 12), num_adults=4)

    updated = update_existing_booking(repo, booking["id"], {"notes": "Late arrival"})

    assert updated["notes"] == "Late arrival"
    assert remote.bookings[booking["id"]] == {"notes": "Late arrival"}


@pytest.mark.integration
def test_unchanged_update_is_a_no_op(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    room = make_room()
    booking = make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 12))

    update_existing_booking(repo, booking["id"], {"check_in": date(2026, 11, 10)})

    assert remote.calls == []


@pytest.mark.integration
def test_reopening_cancelled_booking_is_admitted_again(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    """Test that un-cancelling a booking whose nights were resold is refused."""
    room = make_room()
    cancelled = make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 12), status="CANCELLED")
    make_booking(room["id"], date(2026, 11, 11), date(2026, 11, 13))

    with pytest.raises(ConflictError):
        update_existing_booking(repo, cancelled["id"], {"status": "CONFIRMED"})

    assert remote.calls == []


@pytest.mark.integration
def test_cancel_frees_the_nights(
    repo: SyncingRepository,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    room = make_room()
    booking = make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 12))
    other = make_booking(room["id"], date(2026, 11, 20), date(2026, 11, 22))

    update_existing_booking(repo, booking["id"], {"status": "CANCELLED"})
    moved = update_existing_booking(
        repo, other["id"], {"check_in": date(2026, 11, 10), "check_out": date(2026, 11, 12)}
    )

    assert moved["check_in"] == date(2026, 11, 10)


@pytest.mark.integration
def test_update_unknown_booking(repo: SyncingRepository) -> None:
    with pytest.raises(NotFoundError):
        update_existing_booking(repo, "nope", {"notes": "x"})


# =============================================================================
# Deletes
# =============================================================================


@pytest.mark.integration
def test_delete_guard(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    """Test that only past, cancelled or blocked bookings can be deleted."""
    room = make_room()
    today = local_today()
    upcoming = make_booking(room["id"], today + timedelta(days=5), today + timedelta(days=7))
    in_house = make_booking(room["id"], today - timedelta(days=1), today + timedelta(days=1))
    past = make_booking(room["id"], today - timedelta(days=9), today - timedelta(days=7))
    cancelled = make_booking(
        room["id"], today + timedelta(days=5), today + timedelta(days=7), status="CANCELLED"
    )
    blocked = make_booking(
        room["id"], today + timedelta(days=10), today + timedelta(days=12), status="BLOCKED"
    )

    for booking in (upcoming, in_house):
        with pytest.raises(ConflictError) as exc_info:
            delete_existing_booking(repo, booking["id"])
        assert exc_info.value.kind == ConflictError.ACTIVE_RECORD
    assert remote.calls == []

    for booking in (past, cancelled, blocked):
        delete_existing_booking(repo, booking["id"])

    with repo.engine.connect() as conn:
        assert get_booking(conn, past["id"]) is None
        assert get_booking(conn, upcoming["id"]) is not None
    # None of them existed in the fake CRM; a missing CRM record is not an error
    assert remote.operations() == ["delete_booking"] * 3


@pytest.mark.integration
def test_delete_provisional_booking_stays_local(
    repo: SyncingRepository,
    remote: Any,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
) -> None:
    room = make_room()
    today = local_today()
    booking = make_booking(
        room["id"], today - timedelta(days=9), today - timedelta(days=7), id="import-42"
    )

    delete_existing_booking(repo, booking["id"])

    assert remote.calls == []


# =============================================================================
# Routes
# =============================================================================


@pytest.mark.integration
def test_booking_routes(
    client: TestClient, remote: Any, make_room: Callable[..., Any], future: Callable[[int], date]
) -> None:
    """Test the create, update and delete round trip through /bookings."""
    room = make_room()

    created = client.post(
        "/bookings",
        json={
            "roomId": room["id"],
            "guestName": "Jan Kowalski",
            "checkIn": future(3).isoformat(),
            "checkOut": future(5).isoformat(),
            "totalPrice": "400",
        },
    )
    booking_id = created.json()["id"]
    blocked_delete = client.delete(f"/bookings/{booking_id}")
    cancelled = client.patch(f"/bookings/{booking_id}", json={"status": "CANCELLED"})
    deleted = client.delete(f"/bookings/{booking_id}")

    assert created.status_code == 201
    assert booking_id == "crm-1"
    assert created.json()["source"] == "DIRECT"
    assert created.json()["totalPrice"] == 400.0
    assert blocked_delete.status_code == 409
    assert cancelled.json()["status"] == "CANCELLED"
    assert deleted.status_code == 204
    assert remote.operations() == ["create_booking", "update_booking", "delete_booking"]


@pytest.mark.integration
def test_booking_routes_errors(client: TestClient, make_room: Callable[..., Any]) -> None:
    room = make_room(min_nights=3)

    too_short = client.post(
        "/bookings",
        json={
            "roomId": room["id"],
            "guestName": "Jan Kowalski",
            "checkIn": "2026-11-10",
            "checkOut": "2026-11-11",
        },
    )
    missing = client.patch("/bookings/nope", json={"notes": "x"})
    bad_status = client.patch("/bookings/nope", json={"status": "MAYBE"})

    assert too_short.status_code == 400
    assert too_short.json() == {"error": "Minimum stay is 3 nights", "kind": "MinStayViolation"}
    assert missing.status_code == 404
    assert bad_status.status_code == 422
