"""
Write-through repository: the CRM is the system of record, the local
database is a cache keyed by CRM record ids.

Writes go to the ``RemoteStore`` first. Only when that call succeeds is the
``LocalCache`` touched, using the id the CRM assigned. If the local write is
then rejected (most importantly by the per-night occupancy key), the CRM
write is compensated best-effort and the rejection is raised.
"""

from typing import Any, Optional, Protocol

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from booking_sync.db.readers.bookings import find_overlapping_booking, get_booking
from booking_sync.db.writers.bookings import (
    OCCUPANCY_FIELDS,
    delete_booking,
    insert_booking,
    rekey_booking,
    update_booking,
    write_booking_nights,
)
from booking_sync.db.writers.rooms import delete_room, insert_room, update_room
from booking_sync.errors import BookingSyncError, ConflictError, RecordNotFound
from booking_sync.utils.ids import is_provisional

logger = structlog.get_logger(__name__)


class RemoteStore(Protocol):
    """The CRM operations the write-through layer depends on."""

    def create_booking(self, values: dict[str, Any], room_label: Optional[str] = None) -> str: ...

    def update_booking(
        self, booking_id: str, values: dict[str, Any], room_label: Optional[str] = None
    ) -> None: ...

    def delete_booking(self, booking_id: str) -> None: ...

    def list_bookings(self) -> list[dict[str, Any]]: ...

    def create_room(self, values: dict[str, Any]) -> str: ...

    def update_room(self, room_id: str, values: dict[str, Any]) -> None: ...

    def delete_room(self, room_id: str) -> None: ...

    def list_rooms(self) -> list[dict[str, Any]]: ...

    def update_voucher_usage(self, voucher_id: str, used_count: int) -> None: ...


class LocalCache:
    """
    Transactional writes against the local database.

    Each method runs in its own transaction, so a booking row never exists
    without its occupancy rows (or the other way round).
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _conflict(self, err: IntegrityError, row: dict[str, Any]) -> ConflictError:
        """Describe a rejected write, naming the booking that holds the dates if there is one."""
        if {"room_id", "check_in", "check_out"} <= row.keys():
            with self.engine.connect() as conn:
                overlap = find_overlapping_booking(
                    conn, row["room_id"], row["check_in"], row["check_out"], row.get("id")
                )
            if overlap:
                return ConflictError(
                    f"Date conflict: {overlap['guest_name']} already has a booking from "
                    f"{overlap['check_in'].isoformat()} to {overlap['check_out'].isoformat()}",
                    kind=ConflictError.DATE_CONFLICT,
                )
        return ConflictError(
            f"Record could not be stored: {err.orig}", kind=ConflictError.DUPLICATE_RECORD
        )

    def create_booking(self, row: dict[str, Any]) -> None:
        try:
            with self.engine.begin() as conn:
                insert_booking(conn, row)
                write_booking_nights(
                    conn, row["id"], row["room_id"], row["check_in"], row["check_out"], row["status"]
                )
        except IntegrityError as e:
            raise self._conflict(e, row) from e

    def update_booking(self, booking_id: str, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        """
        Apply changes and rebuild the nights when the booking moved.

        Returns:
            Optional[dict[str, Any]]: The updated row, or None if it is not cached
        """
        merged: Optional[dict[str, Any]] = None
        try:
            with self.engine.begin() as conn:
                update_booking(conn, booking_id, changes)
                merged = get_booking(conn, booking_id)
                if merged is not None and OCCUPANCY_FIELDS & changes.keys():
                    write_booking_nights(
                        conn,
                        booking_id,
                        merged["room_id"],
                        merged["check_in"],
                        merged["check_out"],
                        merged["status"],
                    )
        except IntegrityError as e:
            raise self._conflict(e, {**(merged or {}), **changes, "id": booking_id}) from e
        return merged

    def delete_booking(self, booking_id: str) -> int:
        with self.engine.begin() as conn:
            return delete_booking(conn, booking_id)

    def rekey_booking(self, old_id: str, new_id: str) -> None:
        with self.engine.begin() as conn:
            rekey_booking(conn, old_id, new_id)

    def create_room(self, row: dict[str, Any]) -> None:
        try:
            with self.engine.begin() as conn:
                insert_room(conn, row)
        except IntegrityError as e:
            raise self._conflict(e, row) from e

    def update_room(self, room_id: str, changes: dict[str, Any]) -> int:
        try:
            with self.engine.begin() as conn:
                return update_room(conn, room_id, changes)
        except IntegrityError as e:
            raise self._conflict(e, changes) from e

    def delete_room(self, room_id: str) -> int:
        with self.engine.begin() as conn:
            return delete_room(conn, room_id)


class SyncingRepository:
    """
    Sequences CRM and local-cache writes.

    Invariant: a local record carrying a CRM id exists only after the CRM
    accepted the record. Records with a provisional id (imports the CRM
    has not seen yet) are local-only until ``promote_booking`` runs.
    """

    def __init__(self, remote: RemoteStore, local: LocalCache) -> None:
        self.remote = remote
        self.local = local

    @property
    def engine(self) -> Engine:
        return self.local.engine

    def _compensate_create(self, delete_remote: Any, record_id: str, entity: str) -> None:
        try:
            delete_remote(record_id)
            logger.warning("crm_create_compensated", entity=entity, record_id=record_id)
        except BookingSyncError as e:
            # Left for the next reconciliation pull to surface
            logger.error(
                "crm_compensation_failed", entity=entity, record_id=record_id, error=str(e)
            )

    # -------------------------------------------------------------------------
    # Bookings
    # -------------------------------------------------------------------------

    def create_booking(
        self, values: dict[str, Any], room_label: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Create a booking in the CRM, then cache it under the CRM id.

        Raises:
            UpstreamError: The CRM write failed; nothing was stored locally
            ConflictError: The local store rejected the booking; the CRM
                record was deleted again
        """
        record_id = self.remote.create_booking(values, room_label)
        row = {**values, "id": record_id}
        try:
            self.local.create_booking(row)
        except ConflictError:
            self._compensate_create(self.remote.delete_booking, record_id, "booking")
            raise

        logger.info(
            "booking_created",
            booking_id=record_id,
            room_id=row["room_id"],
            check_in=str(row["check_in"]),
            check_out=str(row["check_out"]),
            status=row["status"],
        )
        return row

    def update_booking(
        self,
        booking_id: str,
        changes: dict[str, Any],
        previous: dict[str, Any],
        room_label: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Update a booking in the CRM, then in the cache.

        If the cache rejects the new dates, the CRM fields are put back to
        ``previous`` best-effort before the conflict is raised.
        """
        remote = not is_provisional(booking_id)
        if remote:
            self.remote.update_booking(booking_id, changes, room_label)
        try:
            updated = self.local.update_booking(booking_id, changes)
        except ConflictError:
            if remote:
                restore = {k: previous.get(k) for k in changes}
                try:
                    self.remote.update_booking(booking_id, restore, room_label)
                except BookingSyncError as e:
                    logger.error("crm_restore_failed", booking_id=booking_id, error=str(e))
            raise

        logger.info("booking_updated", booking_id=booking_id, fields=sorted(changes))
        return updated

    def delete_booking(self, booking_id: str) -> None:
        """Delete from the CRM (a record it no longer has is fine), then locally."""
        if not is_provisional(booking_id):
            try:
                self.remote.delete_booking(booking_id)
            except RecordNotFound:
                logger.info("crm_record_already_deleted", entity="booking", record_id=booking_id)
        self.local.delete_booking(booking_id)
        logger.info("booking_deleted", booking_id=booking_id)

    def promote_booking(
        self, local_id: str, values: dict[str, Any], room_label: Optional[str] = None
    ) -> str:
        """
        Forward a locally imported booking to the CRM and move it onto the CRM id.

        Returns:
            str: The CRM record id
        """
        record_id = self.remote.create_booking(values, room_label)
        try:
            self.local.rekey_booking(local_id, record_id)
        except IntegrityError:
            self._compensate_create(self.remote.delete_booking, record_id, "booking")
            raise
        logger.info("booking_promoted", local_id=local_id, booking_id=record_id)
        return record_id

    # -------------------------------------------------------------------------
    # Rooms
    # -------------------------------------------------------------------------

    def create_room(self, values: dict[str, Any]) -> dict[str, Any]:
        record_id = self.remote.create_room(values)
        row = {**values, "id": record_id}
        try:
            self.local.create_room(row)
        except ConflictError:
            self._compensate_create(self.remote.delete_room, record_id, "room")
            raise
        logger.info("room_created", room_id=record_id)
        return row

    def update_room(self, room_id: str, changes: dict[str, Any]) -> None:
        if not is_provisional(room_id):
            self.remote.update_room(room_id, changes)
        self.local.update_room(room_id, changes)
        logger.info("room_updated", room_id=room_id, fields=sorted(changes))

    def delete_room(self, room_id: str) -> None:
        if not is_provisional(room_id):
            try:
                self.remote.delete_room(room_id)
            except RecordNotFound:
                logger.info("crm_record_already_deleted", entity="room", record_id=room_id)
        self.local.delete_room(room_id)
        logger.info("room_deleted", room_id=room_id)

    # -------------------------------------------------------------------------
    # Vouchers
    # -------------------------------------------------------------------------

    def push_voucher_usage(self, voucher_id: str, used_count: int) -> bool:
        """Mirror a redemption count to the CRM. Best-effort."""
        try:
            self.remote.update_voucher_usage(voucher_id, used_count)
            return True
        except BookingSyncError as e:
            logger.warning("crm_voucher_usage_failed", voucher_id=voucher_id, error=str(e))
            return False
