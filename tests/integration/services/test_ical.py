"""
Integration tests for iCal export and external feed import (services/ical.py).
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.engine import Engine

from booking_sync.db.readers.bookings import get_booking, get_booking_by_external_id
from booking_sync.db.readers.ical_feeds import get_ical_feed
from booking_sync.db.writers.ical_feeds import add_ical_feed
from booking_sync.errors import NotFoundError, UpstreamError
from booking_sync.models.bookings import Booking
from booking_sync.services.ical import import_all_feeds, import_ical_feed, parse_feed, room_calendar
from booking_sync.services.repository import SyncingRepository


def _feed(*events: str) -> bytes:
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Airbnb Inc//Hosting Calendar//EN"]
    for event in events:
        lines.extend(["BEGIN:VEVENT", *event.strip().splitlines(), "END:VEVENT"])
    lines.append("END:VCALENDAR")
    return ("\r\n".join(lines) + "\r\n").encode()


def _event(uid: str, start: str, end: str | None = None, summary: str = "Reserved") -> str:
    lines = [f"UID:{uid}", f"DTSTART;VALUE=DATE:{start}", f"SUMMARY:{summary}"]
    if end:
        lines.append(f"DTEND;VALUE=DATE:{end}")
    return "\n".join(lines)


FEED = _feed(
    _event("air-1@airbnb.com", "20261110", "20261113"),
    _event("air-2@airbnb.com", "20261121", "20261123"),
    _event("air-3@airbnb.com", "20261125"),
)


@pytest.fixture
def feed_id(db_engine: Engine, make_room: Callable[..., Any]) -> int:
    room = make_room(id="room-ical")
    with db_engine.begin() as conn:
        return add_ical_feed(conn, room["id"], "AIRBNB", "https://example.com/calendar.ics")


# =============================================================================
# Export
# =============================================================================


@pytest.mark.integration
def test_export_lists_confirmed_bookings_only(
    db_engine: Engine, make_room: Callable[..., Any], make_booking: Callable[..., Any]
) -> None:
    """Test that only CONFIRMED stays become VEVENTs, with the checkout day as DTEND."""
    room = make_room()
    make_booking(room["id"], date(2026, 11, 10), date(2026, 11, 13))
    make_booking(room["id"], date(2026, 11, 20), date(2026, 11, 22), status="CANCELLED")
    make_booking(room["id"], date(2026, 11, 24), date(2026, 11, 26), status="BLOCKED")

    body = room_calendar(db_engine, room["id"])

    assert body.count("BEGIN:VEVENT") == 1
    assert "DTSTART;VALUE=DATE:20261110" in body
    assert "DTEND;VALUE=DATE:20261113" in body
    assert "UID:bk-1" in body
    assert "SUMMARY:Reserved" in body


@pytest.mark.integration
def test_export_route(client: TestClient, make_room: Callable[..., Any]) -> None:
    room = make_room()

    response = client.get(f"/ical/{room['id']}.ics")
    missing = client.get("/ical/nope.ics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/calendar")
    assert f'filename="room-{room["id"]}.ics"' in response.headers["content-disposition"]
    assert response.text.startswith("BEGIN:VCALENDAR")
    assert missing.status_code == 404


@pytest.mark.integration
def test_export_unknown_room(db_engine: Engine) -> None:
    with pytest.raises(NotFoundError):
        room_calendar(db_engine, "nope")


# =============================================================================
# Parsing
# =============================================================================


@pytest.mark.unit
def test_parse_feed_defaults() -> None:
    """Test that a missing DTEND means one night and events without a UID are dropped."""
    data = _feed(
        _event("air-3@airbnb.com", "20261125", summary="Airbnb (Not available)"),
        "DTSTART;VALUE=DATE:20261201\nSUMMARY:No uid",
        "UID:timed\nDTSTART:20261202T150000Z\nDTEND:20261204T100000Z",
    )

    events = parse_feed(data)

    assert events == [
        {
            "uid": "air-3@airbnb.com",
            "summary": "Airbnb (Not available)",
            "check_in": date(2026, 11, 25),
            "check_out": date(2026, 11, 26),
        },
        {
            "uid": "timed",
            "summary": "External Booking",
            "check_in": date(2026, 12, 2),
            "check_out": date(2026, 12, 4),
        },
    ]


# =============================================================================
# Import
# =============================================================================


@pytest.mark.integration
def test_import_creates_promotes_and_counts_conflicts(
    repo: SyncingRepository,
    remote: Any,
    feed_id: int,
    make_booking: Callable[..., Any],
) -> None:
    """Test that new events are stored and forwarded, and taken nights are refused."""
    make_booking("room-ical", date(2026, 11, 20), date(2026, 11, 22))

    with patch("booking_sync.services.ical.fetch_feed", return_value=FEED):
        result = import_ical_feed(repo, feed_id)

    assert result == {"events": 3, "created": 2, "skipped": 0, "conflicts": 1, "crmFailed": 0}
    assert remote.operations() == ["create_booking", "create_booking"]

    with repo.engine.connect() as conn:
        first = get_booking_by_external_id(conn, "air-1@airbnb.com")
        third = get_booking_by_external_id(conn, "air-3@airbnb.com")
        feed = get_ical_feed(conn, feed_id)
    assert first is not None and first["id"] == "crm-1"
    assert first["source"] == "AIRBNB"
    assert third is not None and third["id"] == "crm-2"
    assert third["check_out"] == date(2026, 11, 26)
    assert feed is not None and feed["last_synced_at"] is not None


@pytest.mark.integration
def test_import_rerun_skips_known_events(
    repo: SyncingRepository, remote: Any, feed_id: int
) -> None:
    """Test that importing the same feed twice creates nothing the second time."""
    with patch("booking_sync.services.ical.fetch_feed", return_value=FEED):
        import_ical_feed(repo, feed_id)
        second = import_ical_feed(repo, feed_id)

    assert second == {"events": 3, "created": 0, "skipped": 3, "conflicts": 0, "crmFailed": 0}
    assert remote.operations().count("create_booking") == 3


@pytest.mark.integration
def test_import_keeps_bookings_when_crm_is_down(
    repo: SyncingRepository, remote: Any, feed_id: int
) -> None:
    """Test that a CRM outage leaves imported stays local under their provisional id."""
    remote.fail_on.add("create_booking")

    with patch("booking_sync.services.ical.fetch_feed", return_value=FEED):
        result = import_ical_feed(repo, feed_id)

    assert result["created"] == 3
    assert result["crmFailed"] == 3
    with repo.engine.connect() as conn:
        ids = sorted(conn.execute(select(Booking.id)).scalars())
        booking = get_booking(conn, "ical-air-1@airbnb.com")
    assert ids == ["ical-air-1@airbnb.com", "ical-air-2@airbnb.com", "ical-air-3@airbnb.com"]
    assert booking is not None and booking["status"] == "CONFIRMED"


@pytest.mark.integration
def test_import_unknown_feed(repo: SyncingRepository) -> None:
    with pytest.raises(NotFoundError):
        import_ical_feed(repo, 404)


@pytest.mark.integration
def test_import_all_reports_failing_feed(repo: SyncingRepository, feed_id: int) -> None:
    """Test that one unreachable feed is reported without raising."""
    outage = UpstreamError("ical feed returned 503", system="ical", upstream_status=503)
    with patch("booking_sync.services.ical.fetch_feed", side_effect=outage):
        results = import_all_feeds(repo)

    assert results == [{"feedId": feed_id, "error": "ical feed returned 503"}]


@pytest.mark.integration
def test_feed_admin_routes(client: TestClient, make_room: Callable[..., Any]) -> None:
    room = make_room()

    created = client.post(
        "/admin/ical-feeds",
        json={"roomId": room["id"], "channel": "booking_com", "url": "https://example.com/b.ics"},
    )
    missing_room = client.post(
        "/admin/ical-feeds",
        json={"roomId": "nope", "channel": "airbnb", "url": "https://example.com/a.ics"},
    )
    with patch("booking_sync.services.ical.fetch_feed", return_value=_feed()):
        imported = client.post(f"/admin/ical-feeds/{created.json()['id']}/import")
    listed = client.get("/admin/ical-feeds", params={"roomId": room["id"]})

    assert created.status_code == 201
    assert created.json()["channel"] == "BOOKING_COM"
    assert missing_room.status_code == 404
    assert imported.json()["events"] == 0
    assert [feed["url"] for feed in listed.json()] == ["https://example.com/b.ics"]
    assert listed.json()[0]["lastSyncedAt"] is not None
