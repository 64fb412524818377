"""Discount-code evaluation and redemption."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection

from booking_sync.config import CURRENCY
from booking_sync.db.readers.vouchers import get_voucher_by_code
from booking_sync.db.writers.vouchers import redeem_voucher
from booking_sync.models.vouchers import PERCENTAGE
from booking_sync.utils.money import to_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class VoucherResult:
    """
    Outcome of a voucher check.

    An invalid code is a normal negative answer, carried in ``reason``.
    ``discount_amount`` is None when no booking total was supplied.
    """

    valid: bool
    reason: Optional[str] = None
    discount_amount: Optional[Decimal] = None
    voucher: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        if not self.valid:
            return {"valid": False, "reason": self.reason}

        voucher = self.voucher or {}
        body: dict[str, Any] = {
            "valid": True,
            "discountType": voucher.get("discount_type"),
            "discountValue": float(voucher["discount_value"]) if voucher else None,
            "description": voucher.get("description"),
            "currency": voucher.get("currency") or CURRENCY,
        }
        if self.discount_amount is not None:
            body["discountAmount"] = float(self.discount_amount)
        return body


def compute_discount(voucher: dict[str, Any], total_amount: Decimal) -> Decimal:
    """
    Discount granted on ``total_amount``, never more than the total itself.

    Percentage codes take ``value`` percent, rounded half-up to cents; fixed
    codes take ``value`` clamped to the total.
    """
    value = to_money(voucher["discount_value"])
    if str(voucher["discount_type"]).lower() == PERCENTAGE:
        discount = to_money(total_amount * value / Decimal(100))
    else:
        discount = value
    return min(discount, to_money(total_amount))


def evaluate_voucher(
    voucher: Optional[dict[str, Any]],
    total_amount: Optional[Decimal],
    nights: Optional[int],
    as_of: date,
) -> VoucherResult:
    """
    Check a voucher row against a booking context, short-circuiting in order:
    existence, active flag, validity window, usage cap, minimum nights,
    minimum booking value.

    Args:
        voucher: Voucher row, or None if the code does not exist
        total_amount: Booking total before discount, if known
        nights: Stay length, if known
        as_of: Date the code is being used on

    Returns:
        VoucherResult: Valid with the discount, or invalid with a reason
    """
    if voucher is None:
        return VoucherResult(valid=False, reason="Invalid voucher code")

    if not voucher["is_active"]:
        return VoucherResult(valid=False, reason="This voucher is no longer active")

    if voucher["valid_from"] and as_of < voucher["valid_from"]:
        return VoucherResult(valid=False, reason="This voucher is not yet valid")

    if voucher["valid_until"] and as_of > voucher["valid_until"]:
        return VoucherResult(valid=False, reason="This voucher has expired")

    max_uses = voucher["max_uses"]
    if max_uses is not None and voucher["used_count"] >= max_uses:
        return VoucherResult(valid=False, reason="This voucher has reached its usage limit")

    min_nights = voucher["min_nights"]
    if min_nights and nights is not None and nights < min_nights:
        return VoucherResult(
            valid=False, reason=f"Minimum {min_nights} night(s) required for this voucher"
        )

    min_value = voucher["min_booking_value"]
    if min_value and total_amount is not None and total_amount < min_value:
        return VoucherResult(
            valid=False,
            reason=(
                f"Minimum booking value of {to_money(min_value)} "
                f"{voucher['currency'] or CURRENCY} required"
            ),
        )

    discount = compute_discount(voucher, total_amount) if total_amount is not None else None
    return VoucherResult(valid=True, discount_amount=discount, voucher=voucher)


def validate_voucher_code(
    conn: Connection,
    code: str,
    total_amount: Optional[Decimal],
    nights: Optional[int],
    as_of: date,
) -> VoucherResult:
    """Look a code up in the local cache and evaluate it."""
    result = evaluate_voucher(get_voucher_by_code(conn, code), total_amount, nights, as_of)
    logger.info(
        "voucher_validated",
        code=code.strip().upper(),
        valid=result.valid,
        reason=result.reason,
    )
    return result


def record_redemption(
    conn: Connection, voucher_id: str, booking_id: str, discount_applied: Decimal
) -> int:
    """
    Redeem a voucher for a durably created booking.

    The usage increment and the redemption row share the caller's
    transaction, so usage count and history cannot drift apart.

    Returns:
        int: New usage count
    """
    used_count = redeem_voucher(conn, voucher_id, booking_id, to_money(discount_applied))
    logger.info(
        "voucher_redeemed",
        voucher_id=voucher_id,
        booking_id=booking_id,
        discount_applied=str(discount_applied),
        used_count=used_count,
    )
    return used_count
