from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from booking_sync.dependencies import get_db_engine
from booking_sync.routes._helpers import parse_date_param
from booking_sync.schemas.rates import MassUpdatePayload, RatePayload
from booking_sync.services.rates import mass_update, rate_grid, set_rate
from booking_sync.utils.datetime import local_today

router = APIRouter()


@router.get("/rates")
def get_rates(
    start: Optional[str] = Query(None, description="First day, defaults to the 1st of this month"),
    end: Optional[str] = Query(None, description="Last day, defaults to start + 30 days"),
    db_engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Rate grid for the dashboard: every room, every day of the window."""
    first = parse_date_param(start, "start", required=False) or local_today().replace(day=1)
    last = parse_date_param(end, "end", required=False)
    return rate_grid(db_engine, first, last)


@router.post("/rates")
def save_rate(payload: RatePayload, db_engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    return set_rate(db_engine, payload.room_id, payload.day, payload.price)


@router.post("/rates/mass-update")
def mass_update_rates(
    payload: MassUpdatePayload, db_engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    """
    Set one price across a date range, filtered by weekday.

    Dates already sold to a non-cancelled booking keep their price.
    """
    return mass_update(
        db_engine,
        payload.room_id,
        payload.start_date,
        payload.end_date,
        payload.price,
        payload.days_of_week,
        payload.is_available,
        payload.min_stay,
    )
