"""
Internal helpers shared by the route handlers.

Readers return snake_case rows with ``Decimal`` and ``date`` values; these
helpers turn them into the camelCase JSON the dashboard and website expect
and parse the date query parameters the routes accept.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from booking_sync.errors import ValidationError

HIDDEN_FIELDS = frozenset({"channel_refresh_token", "channel_invite_code"})


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def camelize(row: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """
    Render one row as a JSON object with camelCase keys.

    Credentials stored on properties are never rendered.
    """
    if row is None:
        return None
    return {
        camel_case(key): _json_value(value)
        for key, value in row.items()
        if key not in HIDDEN_FIELDS
    }


def camelize_all(rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return [camelize(row) for row in rows]  # type: ignore[misc]


def parse_date_param(value: Optional[str], name: str, required: bool = True) -> Optional[date]:
    """
    Parse a ``YYYY-MM-DD`` query parameter.

    Raises:
        ValidationError: Missing (when required) or not a calendar date
    """
    if not value:
        if required:
            raise ValidationError(f"{name} is required (YYYY-MM-DD)")
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError as e:
        raise ValidationError(f"{name} is not a valid date (YYYY-MM-DD)") from e
