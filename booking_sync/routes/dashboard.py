from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from booking_sync.dependencies import get_db_engine
from booking_sync.routes._helpers import parse_date_param
from booking_sync.services.dashboard import tape_chart

router = APIRouter()


@router.get("/dashboard/tape-chart")
def get_tape_chart(
    start: Optional[str] = Query(None, description="First day, defaults to the 1st of last month"),
    end: Optional[str] = Query(None, description="Last day, defaults to about five months ahead"),
    db_engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """One timeline per room: non-cancelled stays and price overrides over the window."""
    return tape_chart(
        db_engine,
        parse_date_param(start, "start", required=False),
        parse_date_param(end, "end", required=False),
    )
