# booking_sync/main.py

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from booking_sync.config import ALLOWED_ORIGINS
from booking_sync.errors import BookingSyncError
from booking_sync.logging_config import setup_logging
from booking_sync.middleware import RequestIDMiddleware, UnhandledErrorMiddleware
from booking_sync.routes.admin import router as admin_router
from booking_sync.routes.bookings import router as bookings_router
from booking_sync.routes.dashboard import router as dashboard_router
from booking_sync.routes.health import router as health_router
from booking_sync.routes.ical import router as ical_router
from booking_sync.routes.metrics import router as metrics_router
from booking_sync.routes.public import router as public_router
from booking_sync.routes.rates import router as rates_router
from booking_sync.routes.webhooks import router as webhooks_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Booking Sync API",
    description="Availability, booking admission and CRM/channel-manager synchronization",
    version="1.0.0",
)

# The last middleware added runs first: CORS, request ids, then the 500 fallback
app.add_middleware(UnhandledErrorMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingSyncError)
async def booking_sync_error_handler(request: Request, exc: BookingSyncError) -> JSONResponse:
    """Render domain errors as ``{"error", "kind"}`` with their own status code."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_failed",
        method=request.method,
        path=request.url.path,
        status_code=exc.status_code,
        kind=exc.kind,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(public_router, prefix="/public", tags=["Public"])
app.include_router(bookings_router, tags=["Bookings"])
app.include_router(rates_router, tags=["Rates"])
app.include_router(dashboard_router, tags=["Dashboard"])
app.include_router(ical_router, tags=["iCal"])
app.include_router(webhooks_router, tags=["Webhooks"])
app.include_router(admin_router, prefix="/admin", tags=["Admin"])
