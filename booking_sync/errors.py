"""
Error taxonomy shared by the validator, the sync layer and the HTTP routes.

Every error carries the HTTP status it maps to and a machine-readable ``kind``
so route handlers never have to translate messages by hand. Messages are
user-displayable (they name the conflicting guest, the room limits, etc.).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fastapi import status


class BookingSyncError(Exception):
    """Base class for all domain errors raised by booking_sync."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: str = "InternalError"

    def __init__(self, message: str, *, kind: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind}


class ValidationError(BookingSyncError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST
    kind = "ValidationError"


class NotFoundError(BookingSyncError):
    """Room, booking, property or voucher absent."""

    status_code = status.HTTP_404_NOT_FOUND
    kind = "NotFound"


class RoomNotFound(NotFoundError):
    """Inbound event references a channel room id with no local mapping."""

    kind = "RoomNotFound"


class ConflictError(BookingSyncError):
    """
    Booking admission rejected.

    Capacity and minimum-stay violations are client errors (400); date
    overlaps and usage-cap races are conflicts (409).
    """

    kind = "DateConflict"

    CAPACITY_EXCEEDED = "CapacityExceeded"
    INVALID_RANGE = "InvalidRange"
    MIN_STAY_VIOLATION = "MinStayViolation"
    DATE_CONFLICT = "DateConflict"
    USAGE_LIMIT_REACHED = "UsageLimitReached"
    DUPLICATE_RECORD = "DuplicateRecord"
    ACTIVE_RECORD = "ActiveRecord"

    _BAD_REQUEST_KINDS = {CAPACITY_EXCEEDED, INVALID_RANGE, MIN_STAY_VIOLATION}

    def __init__(self, message: str, *, kind: str = DATE_CONFLICT) -> None:
        super().__init__(message, kind=kind)
        self.status_code = (
            status.HTTP_400_BAD_REQUEST
            if kind in self._BAD_REQUEST_KINDS
            else status.HTTP_409_CONFLICT
        )


class UpstreamError(BookingSyncError):
    """An external system (CRM or channel manager) call failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "UpstreamError"

    def __init__(self, message: str, *, system: str, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.system = system
        self.upstream_status = upstream_status


class RecordNotFound(UpstreamError):
    """The external system has no record with the requested id."""

    kind = "RecordNotFound"


@dataclass(frozen=True)
class ParseFailure:
    """
    Typed failure returned by the webhook normalizer.

    ``event`` is the WebhookLog event code (PARSE_FAILED, MISSING_FIELDS,
    INVALID_DATE); ``payload_excerpt`` is already truncated for storage.
    """

    event: str
    reason: str
    payload_excerpt: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    status_code = status.HTTP_400_BAD_REQUEST
