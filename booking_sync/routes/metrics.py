"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP booking_sync_booking_admissions_total Booking admission attempts
        # TYPE booking_sync_booking_admissions_total counter
        booking_sync_booking_admissions_total{channel="public",outcome="accepted"} 12.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Metrics in the Prometheus text exposition format, for scraping."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
