"""
Normalize channel-manager webhook bodies into one canonical booking event.

The channel manager's auto-action webhook has no fixed wire format. Bodies
have arrived as JSON, URL-encoded forms, ``key:value`` lines and JSON hidden
behind an ``=``-prefixed form key. Each format has its own parsing strategy;
strategies are tried in a fixed order and the first one that yields a map
containing the provider booking id wins.

Nothing in here raises past ``normalize_webhook``: callers get either a
``CanonicalBookingEvent`` or a ``ParseFailure``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, Union
from urllib.parse import parse_qsl

import structlog
from dateutil import parser as date_parser

from booking_sync.config import CHANNEL_SOURCE, PROPERTY_LOCALE
from booking_sync.db.writers.webhook_logs import excerpt
from booking_sync.errors import ParseFailure
from booking_sync.utils.money import ZERO, to_money

logger = structlog.get_logger(__name__)

REQUIRED_KEY = "bookId"

PARSE_FAILED = "PARSE_FAILED"
MISSING_FIELDS = "MISSING_FIELDS"
INVALID_DATE = "INVALID_DATE"

# =============================================================================
# Body parsing strategies
# =============================================================================

ParseStrategy = Callable[[str], Optional[dict[str, Any]]]


def _as_map(value: Any) -> Optional[dict[str, Any]]:
    if isinstance(value, dict) and REQUIRED_KEY in value:
        return value
    return None


def parse_json(raw: str) -> Optional[dict[str, Any]]:
    try:
        return _as_map(json.loads(raw))
    except (ValueError, RecursionError):
        # Deeply nested arrays exhaust the decoder's stack
        return None


def parse_form(raw: str) -> Optional[dict[str, Any]]:
    if "=" not in raw:
        return None
    return _as_map(dict(parse_qsl(raw.strip(), keep_blank_values=True)))


def parse_key_value(raw: str) -> Optional[dict[str, Any]]:
    """One ``key: value`` pair per line; lines without a colon are ignored."""
    pairs = {}
    for line in raw.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip():
            pairs[key.strip()] = value.strip()
    return _as_map(pairs)


def parse_wrapped_json(raw: str) -> Optional[dict[str, Any]]:
    """JSON sent as the value of a form key, e.g. ``payload={...}``."""
    idx = raw.find("=")
    if idx <= 0:
        return None
    return parse_json(raw[idx + 1 :])


PARSE_STRATEGIES: tuple[tuple[str, ParseStrategy], ...] = (
    ("json", parse_json),
    ("form", parse_form),
    ("key_value", parse_key_value),
    ("wrapped_json", parse_wrapped_json),
)


def parse_body(raw: str) -> tuple[Optional[str], Optional[dict[str, Any]]]:
    """
    Run the strategies in order.

    Returns:
        tuple: (strategy name, parsed map), or (None, None) if none matched
    """
    for name, strategy in PARSE_STRATEGIES:
        parsed = strategy(raw)
        if parsed is not None:
            return name, parsed
    return None, None


# =============================================================================
# Field-level rules
# =============================================================================

_STATUS_MAP = {
    "0": "CANCELLED",
    "cancelled": "CANCELLED",
    "1": "CONFIRMED",
    "confirmed": "CONFIRMED",
    "2": "NEW",
    "new": "NEW",
    "3": "REQUEST",
    "request": "REQUEST",
    "4": "BLOCKED",
    "black": "BLOCKED",
    "blocked": "BLOCKED",
}


def map_channel_status(value: Any) -> str:
    """
    Map a provider status code or word to the booking status enum.

    Unrecognized values map to CONFIRMED: a wrongly confirmed booking can be
    corrected by hand, a dropped one is lost.
    """
    return _STATUS_MAP.get(str(value if value is not None else "").strip().lower(), "CONFIRMED")


_PLACEHOLDER = re.compile(r"^\[.+\]$")


def is_unresolved(value: Any) -> bool:
    """True for template tokens the provider failed to substitute, e.g. ``[guestlastname]``."""
    return isinstance(value, str) and bool(_PLACEHOLDER.match(value.strip()))


def clean_value(value: Any) -> str:
    """Field value as a stripped string; placeholders and None become ``""``."""
    if value is None or is_unresolved(value):
        return ""
    return str(value).strip()


def parse_price(value: Any) -> Decimal:
    """
    Parse a provider price string.

    Currency symbols and codes are dropped. When a comma is present the last
    comma is the decimal point and earlier dots are thousands separators
    (``1.250,00 zł`` -> 1250.00). Empty or unparseable input is 0.
    """
    text = clean_value(value)
    cleaned = re.sub(r"[^\d.,]", "", text)
    if "," in cleaned:
        whole, _, cents = cleaned.rpartition(",")
        cleaned = f"{whole.replace('.', '').replace(',', '')}.{cents}"
    if not cleaned or cleaned == ".":
        return ZERO
    try:
        return to_money(Decimal(cleaned))
    except (InvalidOperation, ValueError):
        return ZERO


MONTH_NAMES: dict[str, dict[str, int]] = {
    "pl": {
        "stycznia": 1, "styczeń": 1, "lutego": 2, "luty": 2, "marca": 3, "marzec": 3,
        "kwietnia": 4, "kwiecień": 4, "maja": 5, "maj": 5, "czerwca": 6, "czerwiec": 6,
        "lipca": 7, "lipiec": 7, "sierpnia": 8, "sierpień": 8, "września": 9,
        "wrzesnia": 9, "wrzesień": 9, "października": 10, "pazdziernika": 10,
        "październik": 10, "listopada": 11, "listopad": 11, "grudnia": 12, "grudzień": 12,
    },
    "en": {
        "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
        "july": 7, "august": 8, "september": 9, "october": 10, "november": 11,
        "december": 12,
    },
}


def _lookup_month(word: str, locale: str) -> Optional[int]:
    """Exact month name, else a three-letter prefix match (``lut`` -> February)."""
    word = word.lower().strip(".")
    for names in (MONTH_NAMES.get(locale, {}), MONTH_NAMES["en"]):
        if word in names:
            return names[word]
        for name, month in names.items():
            if len(word) >= 3 and name[:3] == word[:3]:
                return month
    return None


_LONG_DATE = re.compile(r"^(\d{1,2})\.?\s+([^\W\d_]+)\.?\s+(\d{4})$")
_EU_DATE = re.compile(r"(\d{1,2})[./](\d{1,2})[./](\d{4})")
_ISO_DATE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")
_FULL_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def _parse_long_date(text: str, locale: str) -> Optional[date]:
    """``[weekday,] DD month[,] YYYY`` in the property locale."""
    head, sep, rest = text.partition(",")
    if sep and not any(ch.isdigit() for ch in head):
        text = rest
    match = _LONG_DATE.match(text.replace(",", " ").strip())
    if not match:
        return None
    month = _lookup_month(match.group(2), locale)
    if month is None:
        return None
    return date(int(match.group(3)), month, int(match.group(1)))


def parse_flexible_date(value: Any, locale: str = PROPERTY_LOCALE) -> date:
    """
    Parse a provider date.

    Tried in order: ISO-8601, ``DD Month YYYY`` in the property locale (a
    leading weekday name before a comma is dropped), ``DD/MM/YYYY`` or
    ``DD.MM.YYYY``, and finally a ``YYYY-MM-DD`` substring anywhere in the text.

    Raises:
        ValueError: Nothing matched. There is no default date.
    """
    text = clean_value(value)
    if not text:
        raise ValueError("Empty date string")

    # isoparse also takes "2026" or "2026-02" and fills in day 1
    if _FULL_ISO_PREFIX.match(text):
        try:
            return date_parser.isoparse(text).date()
        except (ValueError, OverflowError):
            pass

    try:
        parsed = _parse_long_date(text, locale)
        if parsed is not None:
            return parsed

        match = _EU_DATE.search(text)
        if match:
            return date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

        match = _ISO_DATE.search(text)
        if match:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError as e:
        raise ValueError(f"Cannot parse date: {text!r}") from e

    raise ValueError(f"Cannot parse date: {text!r}")


def _parse_count(value: Any, default: int) -> int:
    text = clean_value(value)
    try:
        return int(text) if text else default
    except ValueError:
        return default


# =============================================================================
# Canonical event
# =============================================================================


@dataclass(frozen=True)
class CanonicalBookingEvent:
    """A channel booking event, normalized and ready for admission."""

    provider_booking_id: str
    provider_room_id: str
    status: str
    check_in: date
    check_out: date
    guest_name: str
    guest_email: Optional[str]
    guest_phone: Optional[str]
    num_adults: int
    num_children: int
    total_price: Decimal
    source: str
    notes: str
    strategy: str
    payload_excerpt: str

    def booking_values(self, room_id: str) -> dict[str, Any]:
        """Booking columns for the local room ``room_id``."""
        return {
            "room_id": room_id,
            "guest_name": self.guest_name,
            "guest_email": self.guest_email,
            "guest_phone": self.guest_phone,
            "check_in": self.check_in,
            "check_out": self.check_out,
            "status": self.status,
            "source": self.source,
            "total_price": self.total_price,
            "num_adults": self.num_adults,
            "num_children": self.num_children,
            "external_id": self.provider_booking_id,
            "notes": self.notes,
        }


def to_canonical_event(
    payload: dict[str, Any], strategy: str, payload_excerpt: str, locale: str = PROPERTY_LOCALE
) -> Union[CanonicalBookingEvent, ParseFailure]:
    """Apply the field rules to a parsed body."""
    book_id = clean_value(payload.get("bookId"))
    room_id = clean_value(payload.get("roomId"))
    if not book_id or not room_id:
        return ParseFailure(
            event=MISSING_FIELDS,
            reason=f"Missing required fields: bookId={book_id or None}, roomId={room_id or None}",
            payload_excerpt=payload_excerpt,
        )

    try:
        check_in = parse_flexible_date(payload.get("firstNight") or payload.get("arrival"), locale)
        if clean_value(payload.get("lastNight")):
            # The provider's last night is inclusive; the stay ends the morning after
            check_out = parse_flexible_date(payload["lastNight"], locale) + timedelta(days=1)
        else:
            check_out = parse_flexible_date(payload.get("departure"), locale)
    except ValueError as e:
        return ParseFailure(
            event=INVALID_DATE,
            reason=str(e),
            payload_excerpt=payload_excerpt,
            details={"bookId": book_id, "roomId": room_id},
        )

    first_name = clean_value(payload.get("guestFirstName"))
    last_name = clean_value(payload.get("guestLastName"))
    referer = payload.get("referer")
    clean_referer = CHANNEL_SOURCE if is_unresolved(referer) else clean_value(referer)
    source = clean_referer or clean_value(payload.get("apiSource")) or CHANNEL_SOURCE

    return CanonicalBookingEvent(
        provider_booking_id=book_id,
        provider_room_id=room_id,
        status=map_channel_status(payload.get("status")),
        check_in=check_in,
        check_out=check_out,
        guest_name=f"{first_name} {last_name}".strip() or "Guest",
        guest_email=clean_value(payload.get("guestEmail")) or None,
        guest_phone=clean_value(payload.get("guestPhone") or payload.get("guestMobile")) or None,
        num_adults=_parse_count(payload.get("numAdult"), 1) or 1,
        num_children=_parse_count(payload.get("numChild"), 0),
        total_price=parse_price(payload.get("price")),
        source=source.upper(),
        notes=f"Imported via webhook from {clean_referer or 'channel manager'}",
        strategy=strategy,
        payload_excerpt=payload_excerpt,
    )


def normalize_webhook(
    raw_body: Union[bytes, str],
    content_type: Optional[str] = None,
    locale: str = PROPERTY_LOCALE,
) -> Union[CanonicalBookingEvent, ParseFailure]:
    """
    Turn a raw webhook body into a canonical booking event.

    Args:
        raw_body: Body exactly as received
        content_type: Content-Type header; recorded only, the body decides the format
        locale: Month/weekday vocabulary for long-form dates

    Returns:
        CanonicalBookingEvent on success, ParseFailure otherwise
    """
    raw = raw_body.decode("utf-8", errors="replace") if isinstance(raw_body, bytes) else raw_body
    payload_excerpt = excerpt(raw) or ""

    strategy, payload = parse_body(raw)
    if payload is None or strategy is None:
        logger.warning(
            "webhook_parse_failed",
            content_type=content_type,
            body_length=len(raw),
            payload_excerpt=payload_excerpt,
        )
        return ParseFailure(
            event=PARSE_FAILED,
            reason="Could not parse body in any known format",
            payload_excerpt=payload_excerpt,
            details={"contentType": content_type},
        )

    logger.debug("webhook_body_parsed", strategy=strategy, content_type=content_type)
    return to_canonical_event(payload, strategy, payload_excerpt, locale)
