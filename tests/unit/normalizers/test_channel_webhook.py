"""
Unit tests for normalizers/channel_webhook.py.
"""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

import pytest

from booking_sync.errors import ParseFailure
from booking_sync.normalizers.channel_webhook import (
    INVALID_DATE,
    MISSING_FIELDS,
    PARSE_FAILED,
    CanonicalBookingEvent,
    clean_value,
    map_channel_status,
    normalize_webhook,
    parse_body,
    parse_flexible_date,
    parse_price,
)


def _payload(**overrides: str) -> dict[str, str]:
    payload = {
        "bookId": "78412",
        "roomId": "5501",
        "status": "1",
        "firstNight": "2026-03-10",
        "lastNight": "2026-03-12",
        "guestFirstName": "Anna",
        "guestLastName": "Nowak",
        "guestEmail": "anna@example.com",
        "numAdult": "2",
        "numChild": "1",
        "price": "1.250,00 zł",
        "referer": "Booking.com",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Field rules
# =============================================================================


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1.250,00 zł", Decimal("1250.00")),
        ("544,00zł", Decimal("544.00")),
        ("$45.99", Decimal("45.99")),
        ("PLN 300", Decimal("300.00")),
        ("", Decimal("0.00")),
        ("[price]", Decimal("0.00")),
        ("n/a", Decimal("0.00")),
    ],
)
def test_parse_price(raw: str, expected: Decimal) -> None:
    """Test that provider price strings are parsed with the last comma as decimal point."""
    assert parse_price(raw) == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2026-02-23", date(2026, 2, 23)),
        ("2026-02-23T14:00:00", date(2026, 2, 23)),
        ("poniedziałek, 23 lutego, 2026", date(2026, 2, 23)),
        ("23 lutego 2026", date(2026, 2, 23)),
        ("23 lut 2026", date(2026, 2, 23)),
        ("Monday, 23 February, 2026", date(2026, 2, 23)),
        ("23.02.2026", date(2026, 2, 23)),
        ("23/02/2026", date(2026, 2, 23)),
        ("arrival on 2026-02-23 after 3pm", date(2026, 2, 23)),
    ],
)
def test_parse_flexible_date(raw: str, expected: date) -> None:
    """Test that every supported provider date shape resolves to the same calendar day."""
    assert parse_flexible_date(raw, "pl") == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw", ["", "[firstnight]", "sometime next week", "32.13.2026", "2026", "2026-02"]
)
def test_parse_flexible_date_has_no_default(raw: str) -> None:
    """Test that unparseable dates raise instead of falling back to today."""
    with pytest.raises(ValueError):
        parse_flexible_date(raw, "pl")


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw,expected",
    [
        ("0", "CANCELLED"),
        ("cancelled", "CANCELLED"),
        ("1", "CONFIRMED"),
        ("2", "NEW"),
        ("3", "REQUEST"),
        ("4", "BLOCKED"),
        ("black", "BLOCKED"),
        (" Confirmed ", "CONFIRMED"),
        ("7", "CONFIRMED"),
        ("", "CONFIRMED"),
        (None, "CONFIRMED"),
    ],
)
def test_map_channel_status(raw: object, expected: str) -> None:
    """Test that unknown status codes fail open to CONFIRMED."""
    assert map_channel_status(raw) == expected


@pytest.mark.unit
def test_clean_value_drops_unresolved_placeholders() -> None:
    """Test that template tokens the provider did not substitute become empty strings."""
    assert clean_value("[guestlastname]") == ""
    assert clean_value("  Kowalski ") == "Kowalski"
    assert clean_value(None) == ""


# =============================================================================
# Body parsing
# =============================================================================


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw,strategy",
    [
        ('{"bookId": "1", "roomId": "2"}', "json"),
        ("bookId=1&roomId=2", "form"),
        ("bookId: 1\nroomId: 2\nnote without colon", "key_value"),
        ('payload={"bookId": "1", "roomId": "2"}', "wrapped_json"),
    ],
)
def test_parse_body_strategies(raw: str, strategy: str) -> None:
    """Test that each wire format is picked up by its own strategy."""
    name, parsed = parse_body(raw)
    assert name == strategy
    assert parsed is not None
    assert str(parsed["bookId"]) == "1"


@pytest.mark.unit
def test_parse_body_rejects_maps_without_booking_id() -> None:
    """Test that a body parsing into a map without bookId matches no strategy."""
    assert parse_body('{"roomId": "2"}') == (None, None)


# =============================================================================
# normalize_webhook
# =============================================================================


@pytest.mark.unit
def test_normalize_webhook_builds_canonical_event() -> None:
    """Test that a JSON body becomes a canonical event with a half-open stay."""
    event = normalize_webhook(json.dumps(_payload()).encode(), "application/json", "pl")

    assert isinstance(event, CanonicalBookingEvent)
    assert event.provider_booking_id == "78412"
    assert event.provider_room_id == "5501"
    assert event.status == "CONFIRMED"
    assert event.check_in == date(2026, 3, 10)
    # lastNight is inclusive
    assert event.check_out == date(2026, 3, 13)
    assert event.guest_name == "Anna Nowak"
    assert event.num_adults == 2
    assert event.num_children == 1
    assert event.total_price == Decimal("1250.00")
    assert event.source == "BOOKING.COM"
    assert event.strategy == "json"


@pytest.mark.unit
def test_normalize_webhook_uses_departure_when_no_last_night() -> None:
    """Test that departure is taken as the checkout day without adding a night."""
    payload = _payload(departure="2026-03-12")
    del payload["lastNight"]

    event = normalize_webhook(json.dumps(payload), None, "pl")

    assert isinstance(event, CanonicalBookingEvent)
    assert event.check_out == date(2026, 3, 12)


@pytest.mark.unit
def test_normalize_webhook_form_body_with_placeholders() -> None:
    """Test that unresolved placeholders fall back to defaults instead of leaking through."""
    body = (
        "bookId=9&roomId=5501&firstNight=2026-03-10&lastNight=2026-03-10"
        "&guestFirstName=[guestfirstname]&guestLastName=&referer=[referer]&numAdult="
    )

    event = normalize_webhook(body, "application/x-www-form-urlencoded", "pl")

    assert isinstance(event, CanonicalBookingEvent)
    assert event.guest_name == "Guest"
    assert event.num_adults == 1
    assert event.source == "BEDS24"
    assert event.check_out == date(2026, 3, 11)


@pytest.mark.unit
def test_normalize_webhook_unparseable_body() -> None:
    """Test that a body no strategy understands yields PARSE_FAILED with an excerpt."""
    result = normalize_webhook(b"<xml>not a booking</xml>", "text/xml")

    assert isinstance(result, ParseFailure)
    assert result.event == PARSE_FAILED
    assert result.payload_excerpt == "<xml>not a booking</xml>"
    assert result.details == {"contentType": "text/xml"}


@pytest.mark.unit
def test_normalize_webhook_deeply_nested_json() -> None:
    """Test that a body too deep for the JSON decoder is a parse failure, not a crash."""
    result = normalize_webhook(b"[" * 200000, "application/json")

    assert isinstance(result, ParseFailure)
    assert result.event == PARSE_FAILED
    assert len(result.payload_excerpt) <= 2000


@pytest.mark.unit
def test_normalize_webhook_missing_room() -> None:
    """Test that a body without roomId yields MISSING_FIELDS."""
    result = normalize_webhook(json.dumps({"bookId": "1", "firstNight": "2026-03-10"}))

    assert isinstance(result, ParseFailure)
    assert result.event == MISSING_FIELDS


@pytest.mark.unit
def test_normalize_webhook_invalid_date() -> None:
    """Test that an unparseable stay date yields INVALID_DATE carrying the ids."""
    result = normalize_webhook(json.dumps(_payload(firstNight="soon")), locale="pl")

    assert isinstance(result, ParseFailure)
    assert result.event == INVALID_DATE
    assert result.details == {"bookId": "78412", "roomId": "5501"}
