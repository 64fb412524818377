"""
iCal calendars: per-room export of confirmed stays, and import of external
feeds (Airbnb, Booking.com, ...) into the local cache.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

import structlog
from icalendar import Calendar, Event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from booking_sync.db.readers.bookings import get_booking_by_external_id, list_confirmed_bookings
from booking_sync.db.readers.ical_feeds import get_ical_feed, list_ical_feeds
from booking_sync.db.readers.rooms import get_room
from booking_sync.db.writers.bookings import insert_booking, write_booking_nights
from booking_sync.db.writers.ical_feeds import mark_feed_synced
from booking_sync.errors import BookingSyncError, NotFoundError, UpstreamError
from booking_sync.metrics import records_synced, sync_failures
from booking_sync.network.client import raise_for_upstream_status, send_request
from booking_sync.services.bookings import room_label
from booking_sync.services.repository import SyncingRepository
from booking_sync.utils.datetime import utc_now
from booking_sync.utils.ids import ICAL_PREFIX, provisional_id
from booking_sync.utils.money import ZERO

logger = structlog.get_logger(__name__)

ICAL = "ical"
PRODID = "-//booking-sync//booking-sync//EN"
DEFAULT_SUMMARY = "External Booking"


def room_calendar(engine: Engine, room_id: str) -> str:
    """
    Render the ``.ics`` feed of one room: one VEVENT per CONFIRMED booking.

    Raises:
        NotFoundError: No such room
    """
    with engine.connect() as conn:
        room = get_room(conn, room_id)
        if room is None:
            raise NotFoundError(f"Room {room_id} not found")
        bookings = list_confirmed_bookings(conn, room_id)

    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", room_label(room))

    stamp = utc_now()
    for booking in bookings:
        event = Event()
        event.add("uid", booking["id"])
        event.add("dtstamp", stamp)
        event.add("dtstart", booking["check_in"])
        event.add("dtend", booking["check_out"])
        event.add("summary", "Reserved")
        event.add("description", f"Booking via {booking['source']}")
        cal.add_component(event)

    return cal.to_ical().decode("utf-8")


def _as_date(value: Any) -> date:
    return value.date() if isinstance(value, datetime) else value


def parse_feed(data: bytes | str) -> list[dict[str, Any]]:
    """
    VEVENTs of a feed as ``{uid, summary, check_in, check_out}``.

    Events without a UID or a start date are dropped. An event without an
    end is treated as a single night.
    """
    events = []
    for component in Calendar.from_ical(data).walk("VEVENT"):
        uid = component.get("uid")
        start = component.get("dtstart")
        if not uid or start is None:
            continue
        check_in = _as_date(start.dt)
        end = component.get("dtend")
        check_out = _as_date(end.dt) if end is not None else None
        if check_out is None or check_out <= check_in:
            check_out = date.fromordinal(check_in.toordinal() + 1)
        events.append(
            {
                "uid": str(uid),
                "summary": str(component.get("summary") or DEFAULT_SUMMARY),
                "check_in": check_in,
                "check_out": check_out,
            }
        )
    return events


def fetch_feed(url: str) -> bytes:
    res = send_request(ICAL, "GET", url, endpoint="feed")
    raise_for_upstream_status(ICAL, "feed", res)
    return res.content


def _store_event(
    repo: SyncingRepository, feed: dict[str, Any], event: dict[str, Any]
) -> Optional[dict[str, Any]]:
    """Insert one feed event unless it is already known. Returns the new row."""
    with repo.engine.begin() as conn:
        if get_booking_by_external_id(conn, event["uid"]):
            return None
        booking_id = provisional_id(ICAL_PREFIX, event["uid"])
        row = insert_booking(
            conn,
            {
                "id": booking_id,
                "room_id": feed["room_id"],
                "guest_name": event["summary"][:255],
                "check_in": event["check_in"],
                "check_out": event["check_out"],
                "total_price": ZERO,
                "status": "CONFIRMED",
                "source": feed["channel"].upper(),
                "external_id": event["uid"],
                "num_adults": 1,
                "num_children": 0,
            },
        )
        write_booking_nights(
            conn, booking_id, feed["room_id"], event["check_in"], event["check_out"], "CONFIRMED"
        )
    return row


def import_ical_feed(repo: SyncingRepository, feed_id: int) -> dict[str, int]:
    """
    Pull one external feed and create the bookings it has that we lack.

    Like the channel import, this skips capacity and min-stay rules; nights
    already held by another booking are still rejected by the occupancy
    key. New bookings are forwarded to the CRM best-effort.

    Raises:
        NotFoundError: No such feed
        UpstreamError: The feed could not be fetched or parsed
    """
    with repo.engine.connect() as conn:
        feed = get_ical_feed(conn, feed_id)
        room = get_room(conn, feed["room_id"]) if feed else None
    if feed is None or room is None:
        raise NotFoundError(f"iCal feed {feed_id} not found")

    try:
        events = parse_feed(fetch_feed(feed["url"]))
    except ValueError as e:
        raise UpstreamError(f"Unreadable iCal feed {feed_id}: {e}", system=ICAL) from e

    created = skipped = conflicts = crm_failed = 0
    for event in events:
        try:
            row = _store_event(repo, feed, event)
        except IntegrityError as e:
            conflicts += 1
            sync_failures.labels(source=feed["channel"], entity_type="bookings").inc()
            logger.warning(
                "ical_event_rejected", feed_id=feed_id, uid=event["uid"], error=str(e.orig)
            )
            continue
        if row is None:
            skipped += 1
            continue

        created += 1
        try:
            repo.promote_booking(row["id"], row, room_label(room))
        except (BookingSyncError, IntegrityError) as e:
            crm_failed += 1
            logger.warning("crm_forward_failed", booking_id=row["id"], error=str(e))

    with repo.engine.begin() as conn:
        mark_feed_synced(conn, feed_id, utc_now())
    records_synced.labels(source=feed["channel"], entity_type="bookings").inc(created)
    logger.info(
        "ical_feed_imported",
        feed_id=feed_id,
        events=len(events),
        created=created,
        skipped=skipped,
        conflicts=conflicts,
        crm_failed=crm_failed,
    )
    return {
        "events": len(events),
        "created": created,
        "skipped": skipped,
        "conflicts": conflicts,
        "crmFailed": crm_failed,
    }


def import_all_feeds(repo: SyncingRepository) -> list[dict[str, Any]]:
    """Import every registered feed; one failing feed does not stop the others."""
    with repo.engine.connect() as conn:
        feeds = list_ical_feeds(conn)

    results = []
    for feed in feeds:
        try:
            results.append({"feedId": feed["id"], **import_ical_feed(repo, feed["id"])})
        except BookingSyncError as e:
            logger.warning("ical_feed_failed", feed_id=feed["id"], error=e.message)
            results.append({"feedId": feed["id"], "error": e.message})
    return results
