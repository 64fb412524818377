import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.engine import Engine

from booking_sync.dependencies import get_db_engine
from booking_sync.services.ical import room_calendar

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/ical/{room_id}.ics", response_class=Response)
def export_room_calendar(room_id: str, db_engine: Engine = Depends(get_db_engine)) -> Response:
    """
    Calendar feed of one room's confirmed bookings, for OTAs to subscribe to.

    Example:
        >>> GET /ical/room-1.ics
        BEGIN:VCALENDAR ...
    """
    body = room_calendar(db_engine, room_id)
    return Response(
        content=body,
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="room-{room_id}.ics"'},
    )
