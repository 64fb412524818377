from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from booking_sync.models.vouchers import VoucherCode, VoucherRedemption


def get_voucher_by_code(conn: Connection, code: str) -> Optional[dict[str, Any]]:
    """
    Look up a voucher by code. Codes are stored upper-case.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        code (str): Code as typed by the guest.

    Returns:
        Optional[dict[str, Any]]: Voucher row, or None if the code does not exist
    """
    normalized = code.strip().upper()
    row = (
        conn.execute(select(VoucherCode).where(VoucherCode.code == normalized)).mappings().first()
    )
    return dict(row) if row else None


def list_redemptions(conn: Connection, voucher_id: str) -> list[dict[str, Any]]:
    stmt = (
        select(VoucherRedemption)
        .where(VoucherRedemption.voucher_id == voucher_id)
        .order_by(VoucherRedemption.id)
    )
    return [dict(r) for r in conn.execute(stmt).mappings().all()]
