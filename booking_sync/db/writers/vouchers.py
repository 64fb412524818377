from decimal import Decimal

from sqlalchemy import insert, or_, select, update
from sqlalchemy.engine import Connection

from booking_sync.errors import ConflictError
from booking_sync.models.vouchers import VoucherCode, VoucherRedemption


def redeem_voucher(
    conn: Connection, voucher_id: str, booking_id: str, discount_applied: Decimal
) -> int:
    """
    Record one redemption and bump the usage counter in the caller's transaction.

    The increment is conditional on ``used_count < max_uses``, so two racing
    redemptions of the last use cannot both pass; the loser gets a
    ``ConflictError`` and its transaction (including the redemption row)
    rolls back.

    Args:
        conn (Connection): Connection inside the caller's transaction.
        voucher_id (str): Voucher id.
        booking_id (str): Booking the discount was applied to.
        discount_applied (Decimal): Discount amount granted.

    Returns:
        int: The new ``used_count``
    """
    result = conn.execute(
        update(VoucherCode)
        .where(
            VoucherCode.id == voucher_id,
            or_(VoucherCode.max_uses.is_(None), VoucherCode.used_count < VoucherCode.max_uses),
        )
        .values(used_count=VoucherCode.used_count + 1)
    )
    if result.rowcount != 1:
        raise ConflictError(
            "This voucher has reached its usage limit", kind=ConflictError.USAGE_LIMIT_REACHED
        )

    conn.execute(
        insert(VoucherRedemption).values(
            voucher_id=voucher_id, booking_id=booking_id, discount_applied=discount_applied
        )
    )
    return conn.execute(
        select(VoucherCode.used_count).where(VoucherCode.id == voucher_id)
    ).scalar_one()
