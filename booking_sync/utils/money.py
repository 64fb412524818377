"""Financial rounding helpers (cents, round-half-up)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """
    Coerce a number-like value to a Decimal rounded half-up to cents.

    Floats are converted through ``str`` so binary artefacts (0.1 + 0.2) never
    leak into totals. ``None`` and empty strings become 0.00.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Not a monetary amount: {value!r}") from e
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
