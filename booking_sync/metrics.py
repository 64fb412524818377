"""
Prometheus metrics for webhook ingestion, booking admission, upstream calls
and reconciliation runs.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from booking_sync.metrics import records_synced
    >>> records_synced.labels(source="CRM", entity_type="bookings").inc(12)
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Upstream (CRM / channel manager) Metrics
# =============================================================================

upstream_requests = Counter(
    "booking_sync_upstream_requests_total",
    "Total requests made to external systems",
    ["system", "endpoint", "status_code"],
)
"""
Labels:
    system: "crm" or "channel"
    endpoint: API path without ids (e.g. "Bookings", "bookings")
    status_code: HTTP status code, or "error" for transport failures
"""

upstream_latency = Histogram(
    "booking_sync_upstream_latency_seconds",
    "External system request latency in seconds",
    ["system"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

token_refreshes = Counter(
    "booking_sync_token_refreshes_total",
    "Total number of access token refresh operations",
    ["system"],
)

# =============================================================================
# Booking Metrics
# =============================================================================

booking_admissions = Counter(
    "booking_sync_booking_admissions_total",
    "Booking admission attempts by entry channel and outcome",
    ["channel", "outcome"],
)
"""
Labels:
    channel: direct, public, webhook, import
    outcome: accepted, or the rejecting error kind (DateConflict, CapacityExceeded, ...)
"""

webhook_events = Counter(
    "booking_sync_webhook_events_total",
    "Inbound channel-manager webhook events",
    ["event", "status"],
)

# =============================================================================
# Sync Metrics
# =============================================================================

records_synced = Counter(
    "booking_sync_records_synced_total",
    "Total number of records upserted into the local cache",
    ["source", "entity_type"],
)

sync_failures = Counter(
    "booking_sync_sync_failures_total",
    "Per-item failures tolerated during bulk reconciliation or import",
    ["source", "entity_type"],
)
