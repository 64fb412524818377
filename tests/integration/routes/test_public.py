"""
Integration tests for the /public availability, booking and voucher endpoints.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert, select
from sqlalchemy.engine import Engine

from booking_sync.config import BALANCE_DUE_DAYS, BOOKING_REF_PREFIX, CURRENCY
from booking_sync.db.readers.bookings import get_booking
from booking_sync.db.readers.vouchers import get_voucher_by_code, list_redemptions
from booking_sync.models.guests import Guest
from booking_sync.models.vouchers import FIXED, VoucherCode
from booking_sync.utils.datetime import local_today


def _add_voucher(engine: Engine, code: str, **overrides: Any) -> str:
    values = {
        "id": f"v-{code.lower()}",
        "code": code,
        "discount_type": FIXED,
        "discount_value": Decimal("500.00"),
        **overrides,
    }
    with engine.begin() as conn:
        conn.execute(insert(VoucherCode).values(**values))
    return values["id"]


def _booking_body(room_id: str, check_in: date, check_out: date, **overrides: Any) -> dict:
    return {
        "roomId": room_id,
        "guestName": "Anna Nowak",
        "guestEmail": "Anna.Nowak@Example.com",
        "numAdults": 2,
        "checkIn": check_in.isoformat(),
        "checkOut": check_out.isoformat(),
        "totalPrice": 300,
        **overrides,
    }


# =============================================================================
# GET /public/availability
# =============================================================================


@pytest.mark.integration
@pytest.mark.parametrize(
    "params",
    [
        {},
        {"checkIn": "2099-01-10"},
        {"checkIn": "not-a-date", "checkOut": "2099-01-12"},
        {"checkIn": "2099-01-12", "checkOut": "2099-01-12"},
        {"checkIn": "2020-01-01", "checkOut": "2020-01-03"},
    ],
)
def test_availability_rejects_bad_dates(client: TestClient, params: dict) -> None:
    """Test that missing, malformed, empty or past ranges are a 400 ValidationError."""
    response = client.get("/public/availability", params=params)

    assert response.status_code == 400
    assert response.json()["kind"] == "ValidationError"


@pytest.mark.integration
def test_availability_lists_rooms_with_pricing(
    client: TestClient,
    make_room: Callable[..., Any],
    make_booking: Callable[..., Any],
    future: Callable[[int], date],
) -> None:
    """Test that available rooms come back with a pricing block and booked ones do not."""
    free = make_room(base_price=Decimal("150.00"), amenities=["wifi"])
    booked = make_room()
    make_booking(booked["id"], future(10), future(12))

    response = client.get(
        "/public/availability",
        params={"checkIn": future(10).isoformat(), "checkOut": future(12).isoformat()},
    )

    assert response.status_code == 200
    data = response.json()
    assert [room["id"] for room in data["rooms"]] == [free["id"]]
    room = data["rooms"][0]
    assert room["amenities"] == ["wifi"]
    assert room["pricing"]["nights"] == 2
    assert room["pricing"]["totalPrice"] == 300.0
    assert room["pricing"]["averagePerNight"] == 150.0
    assert room["pricing"]["currency"] == CURRENCY
    assert [n["date"] for n in room["pricing"]["nightlyBreakdown"]] == [
        future(10).isoformat(),
        future(11).isoformat(),
    ]


# =============================================================================
# POST /public/booking
# =============================================================================


@pytest.mark.integration
def test_public_booking_issues_sequential_refs(
    client: TestClient,
    remote: Any,
    make_room: Callable[..., Any],
    future: Callable[[int], date],
) -> None:
    """Test that website bookings get PREFIX-YYYY-NNNN references in sequence."""
    first_room = make_room()
    second_room = make_room()
    year = local_today().year

    first = client.post("/public/booking", json=_booking_body(first_room["id"], future(5), future(7)))
    second = client.post(
        "/public/booking", json=_booking_body(second_room["id"], future(5), future(7))
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["bookingRef"] == f"{BOOKING_REF_PREFIX}-{year}-0001"
    assert second.json()["bookingRef"] == f"{BOOKING_REF_PREFIX}-{year}-0002"
    assert first.json()["bookingId"] == "crm-1"
    assert remote.operations() == ["create_booking", "create_booking"]


@pytest.mark.integration
def test_public_booking_sets_balance_due_date_and_guest(
    client: TestClient,
    db_engine: Engine,
    make_room: Callable[..., Any],
    future: Callable[[int], date],
) -> None:
    """Test that the balance due date precedes check-in and the guest is stored by email."""
    room = make_room()
    body = _booking_body(room["id"], future(20), future(23), depositAmount=90, locale="pl")

    response = client.post("/public/booking", json=body)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "DEPOSIT_PAID"
    assert data["currency"] == CURRENCY
    assert data["balanceDueDate"] == (future(20) - timedelta(days=BALANCE_DUE_DAYS)).isoformat()

    with db_engine.connect() as conn:
        guest = conn.execute(select(Guest)).mappings().one()
        booking = get_booking(conn, data["bookingId"])
    assert guest["email"] == "anna.nowak@example.com"
    assert guest["language"] == "pl"
    assert booking is not None
    assert booking["guest_id"] == guest["id"]
    assert booking["source"] == "WEBSITE"
    assert booking["payment_status"] == "partial"


@pytest.mark.integration
def test_public_booking_redeems_fixed_voucher_clamped_to_total(
    client: TestClient,
    db_engine: Engine,
    remote: Any,
    make_room: Callable[..., Any],
    future: Callable[[int], date],
) -> None:
    """Test that a fixed voucher larger than the total discounts the whole total once."""
    room = make_room()
    voucher_id = _add_voucher(db_engine, "WELCOME500")

    response = client.post(
        "/public/booking",
        json=_booking_body(room["id"], future(5), future(7), voucherCode=" welcome500 "),
    )

    assert response.status_code == 201
    assert response.json()["discountAmount"] == 300.0

    with db_engine.connect() as conn:
        voucher: Optional[dict] = get_voucher_by_code(conn, "WELCOME500")
        redemptions = list_redemptions(conn, voucher_id)
    assert voucher is not None
    assert voucher["used_count"] == 1
    assert len(redemptions) == 1
    assert redemptions[0]["booking_id"] == response.json()["bookingId"]
    assert redemptions[0]["discount_applied"] == Decimal("300.00")
    assert remote.voucher_usage == {voucher_id: 1}


@pytest.mark.integration
def test_public_booking_refuses_exhausted_voucher_before_writing(
    client: TestClient,
    db_engine: Engine,
    remote: Any,
    make_room: Callable[..., Any],
    future: Callable[[int], date],
) -> None:
    """Test that a voucher at its usage cap fails the booking without touching the CRM."""
    room = make_room()
    _add_voucher(db_engine, "ONCE", max_uses=1, used_count=1)

    response = client.post(
        "/public/booking",
        json=_booking_body(room["id"], future(5), future(7), voucherCode="ONCE"),
    )

    assert response.status_code == 400
    assert "usage limit" in response.json()["error"]
    assert remote.calls == []


@pytest.mark.integration
def test_public_booking_overlap_is_409_naming_guest(
    client: TestClient,
    remote: Any,
    make_room: Callable[..., Any],
    future: Callable[[int], date],
) -> None:
    """Test that booking taken nights returns 409 naming the guest who holds them."""
    room = make_room()
    assert client.post(
        "/public/booking", json=_booking_body(room["id"], future(5), future(8))
    ).status_code == 201

    response = client.post(
        "/public/booking",
        json=_booking_body(room["id"], future(7), future(9), guestName="Jan Kowalski"),
    )

    assert response.status_code == 409
    data = response.json()
    assert data["kind"] == "DateConflict"
    assert "Anna Nowak" in data["error"]
    assert remote.operations() == ["create_booking"]


@pytest.mark.integration
def test_public_booking_capacity_is_400(
    client: TestClient, make_room: Callable[..., Any], future: Callable[[int], date]
) -> None:
    room = make_room(max_adults=2)

    response = client.post(
        "/public/booking", json=_booking_body(room["id"], future(5), future(7), numAdults=3)
    )

    assert response.status_code == 400
    assert response.json() == {
        "error": "This room allows a maximum of 2 adults",
        "kind": "CapacityExceeded",
    }


@pytest.mark.integration
def test_public_booking_unknown_room_is_404(
    client: TestClient, future: Callable[[int], date], db_engine: Engine
) -> None:
    response = client.post("/public/booking", json=_booking_body("nope", future(5), future(7)))

    assert response.status_code == 404
    assert response.json()["kind"] == "NotFound"


@pytest.mark.integration
def test_public_booking_crm_outage_is_500_and_nothing_stored(
    client: TestClient,
    db_engine: Engine,
    remote: Any,
    make_room: Callable[..., Any],
    future: Callable[[int], date],
) -> None:
    """Test that a CRM failure surfaces as a 500 and leaves no local booking behind."""
    room = make_room()
    remote.fail_on.add("create_booking")

    response = client.post("/public/booking", json=_booking_body(room["id"], future(5), future(7)))

    assert response.status_code == 500
    assert response.json()["kind"] == "UpstreamError"
    with db_engine.connect() as conn:
        assert conn.execute(select(Guest)).first() is None


# =============================================================================
# POST /public/voucher/validate
# =============================================================================


@pytest.mark.integration
def test_voucher_validate_unknown_code_is_200_invalid(client: TestClient) -> None:
    """Test that an unknown code is a normal negative answer, not an error status."""
    response = client.post("/public/voucher/validate", json={"code": "NOPE"})

    assert response.status_code == 200
    assert response.json() == {"valid": False, "reason": "Invalid voucher code"}


@pytest.mark.integration
def test_voucher_validate_percentage_with_nights_from_dates(
    client: TestClient, db_engine: Engine
) -> None:
    """Test that nights are derived from the dates and the percentage discount computed."""
    _add_voucher(
        db_engine,
        "TEN",
        discount_type="percentage",
        discount_value=Decimal("10"),
        min_nights=2,
    )

    too_short = client.post(
        "/public/voucher/validate",
        json={"code": "ten", "totalAmount": "333.35", "checkIn": "2099-01-01", "checkOut": "2099-01-02"},
    )
    ok = client.post(
        "/public/voucher/validate",
        json={"code": "ten", "totalAmount": "333.35", "checkIn": "2099-01-01", "checkOut": "2099-01-03"},
    )

    assert too_short.json()["valid"] is False
    assert "Minimum 2 night" in too_short.json()["reason"]
    assert ok.json()["valid"] is True
    assert ok.json()["discountType"] == "percentage"
    assert ok.json()["discountAmount"] == 33.34
