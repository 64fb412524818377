"""
Shared fixtures: an in-memory database, a fake CRM and row factories.

The environment is set before anything from ``booking_sync`` is imported,
because the config module reads it at import time.
"""

from __future__ import annotations

import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ALLOWED_ORIGINS", "*")

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Callable, Generator, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from booking_sync.cache import token_cache  # noqa: E402
from booking_sync.db.engine import engine  # noqa: E402
from booking_sync.db.writers.bookings import insert_booking, write_booking_nights  # noqa: E402
from booking_sync.db.writers.properties import (  # noqa: E402
    insert_default_property,
    store_channel_credentials,
)
from booking_sync.db.writers.rooms import insert_room  # noqa: E402
from booking_sync.dependencies import get_repository  # noqa: E402
from booking_sync.errors import RecordNotFound, UpstreamError  # noqa: E402
from booking_sync.main import app  # noqa: E402
from booking_sync.models.base import Base  # noqa: E402
from booking_sync.models.bookings import Booking, BookingNight  # noqa: E402, F401
from booking_sync.models.guests import Guest  # noqa: E402, F401
from booking_sync.models.ical_feeds import IcalFeed  # noqa: E402, F401
from booking_sync.models.price_rules import PriceRule  # noqa: E402, F401
from booking_sync.models.properties import Property  # noqa: E402, F401
from booking_sync.models.rooms import Room  # noqa: E402, F401
from booking_sync.models.vouchers import VoucherCode, VoucherRedemption  # noqa: E402, F401
from booking_sync.models.webhook_logs import WebhookLog  # noqa: E402, F401
from booking_sync.services.repository import LocalCache, SyncingRepository  # noqa: E402
from booking_sync.utils.datetime import local_today  # noqa: E402


class FakeRemoteStore:
    """
    In-memory CRM.

    Records written through it are kept in ``bookings``/``rooms`` keyed by
    the ids it hands out. Operation names listed in ``fail_on`` raise
    ``UpstreamError`` instead of succeeding; every call is appended to ``calls``.
    """

    def __init__(self) -> None:
        self.bookings: dict[str, dict[str, Any]] = {}
        self.rooms: dict[str, dict[str, Any]] = {}
        self.voucher_usage: dict[str, int] = {}
        self.booking_records: list[dict[str, Any]] = []
        self.room_records: list[dict[str, Any]] = []
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, Optional[str]]] = []
        self._ids = itertools.count(1)

    def _call(self, operation: str, record_id: Optional[str] = None) -> None:
        self.calls.append((operation, record_id))
        if operation in self.fail_on:
            raise UpstreamError(
                f"CRM unavailable for {operation}", system="crm", upstream_status=503
            )

    def _new_id(self) -> str:
        return f"crm-{next(self._ids)}"

    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]

    def create_booking(self, values: dict[str, Any], room_label: Optional[str] = None) -> str:
        self._call("create_booking")
        record_id = self._new_id()
        self.bookings[record_id] = dict(values)
        return record_id

    def update_booking(
        self, booking_id: str, values: dict[str, Any], room_label: Optional[str] = None
    ) -> None:
        self._call("update_booking", booking_id)
        self.bookings.setdefault(booking_id, {}).update(values)

    def delete_booking(self, booking_id: str) -> None:
        self._call("delete_booking", booking_id)
        if self.bookings.pop(booking_id, None) is None:
            raise RecordNotFound(f"Bookings record {booking_id} not found", system="crm")

    def list_bookings(self) -> list[dict[str, Any]]:
        self._call("list_bookings")
        return list(self.booking_records)

    def create_room(self, values: dict[str, Any]) -> str:
        self._call("create_room")
        record_id = self._new_id()
        self.rooms[record_id] = dict(values)
        return record_id

    def update_room(self, room_id: str, values: dict[str, Any]) -> None:
        self._call("update_room", room_id)
        self.rooms.setdefault(room_id, {}).update(values)

    def delete_room(self, room_id: str) -> None:
        self._call("delete_room", room_id)
        if self.rooms.pop(room_id, None) is None:
            raise RecordNotFound(f"Rooms record {room_id} not found", system="crm")

    def list_rooms(self) -> list[dict[str, Any]]:
        self._call("list_rooms")
        return list(self.room_records)

    def update_voucher_usage(self, voucher_id: str, used_count: int) -> None:
        self._call("update_voucher_usage", voucher_id)
        self.voucher_usage[voucher_id] = used_count


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Fresh schema in the shared in-memory database for every test."""
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def clear_token_cache() -> Generator[None, None, None]:
    token_cache.clear()
    yield
    token_cache.clear()


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def repo(db_engine: Engine, remote: FakeRemoteStore) -> SyncingRepository:
    return SyncingRepository(remote, LocalCache(db_engine))


@pytest.fixture
def client(repo: SyncingRepository) -> Generator[TestClient, None, None]:
    """Test client whose routes write through the fake CRM."""
    app.dependency_overrides[get_repository] = lambda: repo
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def future() -> Callable[[int], date]:
    """Date ``n`` days from today; public endpoints refuse past stays."""

    def _future(days: int) -> date:
        return local_today() + timedelta(days=days)

    return _future


@pytest.fixture
def make_property(db_engine: Engine) -> Callable[..., str]:
    def _make(
        property_id: str = "prop-1",
        name: str = "Test Property",
        refresh_token: Optional[str] = None,
    ) -> str:
        with db_engine.begin() as conn:
            insert_default_property(conn, property_id, name)
            if refresh_token:
                store_channel_credentials(conn, property_id, refresh_token)
        return property_id

    return _make


@pytest.fixture
def make_room(db_engine: Engine) -> Callable[..., dict[str, Any]]:
    counter = itertools.count(1)

    def _make(**overrides: Any) -> dict[str, Any]:
        n = next(counter)
        values = {
            "id": f"room-{n}",
            "number": str(100 + n),
            "name": f"Room {n}",
            "base_price": Decimal("200.00"),
            "capacity": 4,
            "max_adults": 2,
            "max_children": 2,
            "min_nights": 1,
            **overrides,
        }
        with db_engine.begin() as conn:
            return insert_room(conn, values)

    return _make


@pytest.fixture
def make_booking(db_engine: Engine) -> Callable[..., dict[str, Any]]:
    """Insert a booking straight into the cache, nights included, bypassing the CRM."""
    counter = itertools.count(1)

    def _make(room_id: str, check_in: date, check_out: date, **overrides: Any) -> dict[str, Any]:
        n = next(counter)
        values = {
            "id": f"bk-{n}",
            "room_id": room_id,
            "guest_name": f"Guest {n}",
            "check_in": check_in,
            "check_out": check_out,
            "num_adults": 2,
            "num_children": 0,
            "total_price": Decimal("0.00"),
            "status": "CONFIRMED",
            "source": "DIRECT",
            **overrides,
        }
        with db_engine.begin() as conn:
            row = insert_booking(conn, values)
            write_booking_nights(
                conn, row["id"], room_id, check_in, check_out, row["status"]
            )
        return row

    return _make
