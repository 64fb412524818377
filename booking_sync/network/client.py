"""
Instrumented HTTP calls to the external systems (CRM and channel manager).

Every outbound request goes through ``send_request`` so latency and status
metrics are recorded in one place and transport failures surface as
``UpstreamError`` instead of raw ``requests`` exceptions.
"""

import time
from typing import Any, Optional

import requests
import structlog

from booking_sync.config import HTTP_TIMEOUT_SECONDS
from booking_sync.errors import UpstreamError
from booking_sync.metrics import upstream_latency, upstream_requests

logger = structlog.get_logger(__name__)

ERROR_TEXT_CHARS = 500


def send_request(
    system: str,
    method: str,
    url: str,
    endpoint: str,
    headers: Optional[dict[str, str]] = None,
    params: Optional[dict[str, Any]] = None,
    json: Any = None,
    timeout: float = HTTP_TIMEOUT_SECONDS,
) -> requests.Response:
    """
    Perform one HTTP request and record metrics for it.

    Non-2xx responses are returned as-is; callers decide what a status means.

    Args:
        system: "crm" or "channel", used as a metric label
        method: HTTP method
        url: Full URL
        endpoint: Id-free endpoint name for the metric label
        headers: Request headers
        params: Query parameters
        json: JSON body
        timeout: Seconds before giving up

    Returns:
        requests.Response: The response, whatever its status

    Raises:
        UpstreamError: The request did not complete (DNS, connect, timeout)
    """
    logger.debug("upstream_request", system=system, method=method, endpoint=endpoint)
    start_time = time.time()
    try:
        res = requests.request(
            method, url, headers=headers, params=params, json=json, timeout=timeout
        )
    except requests.RequestException as err:
        upstream_requests.labels(system=system, endpoint=endpoint, status_code="error").inc()
        logger.warning(
            "upstream_request_failed",
            system=system,
            method=method,
            endpoint=endpoint,
            error=str(err),
        )
        raise UpstreamError(f"{system} request to {endpoint} failed: {err}", system=system) from err
    finally:
        upstream_latency.labels(system=system).observe(time.time() - start_time)

    upstream_requests.labels(
        system=system, endpoint=endpoint, status_code=str(res.status_code)
    ).inc()
    return res


def raise_for_upstream_status(system: str, endpoint: str, res: requests.Response) -> None:
    """Turn a non-2xx response into ``UpstreamError`` carrying a slice of the body."""
    if res.ok:
        return
    logger.error(
        "upstream_error_response",
        system=system,
        endpoint=endpoint,
        status_code=res.status_code,
        response_text=res.text[:ERROR_TEXT_CHARS],
    )
    raise UpstreamError(
        f"{system} API error ({res.status_code}): {res.text[:ERROR_TEXT_CHARS]}",
        system=system,
        upstream_status=res.status_code,
    )


def parse_json(system: str, res: requests.Response) -> Any:
    """JSON body of a response; an empty body (204) is None."""
    if not res.text or not res.text.strip():
        return None
    try:
        return res.json()
    except ValueError as e:
        raise UpstreamError(
            f"Invalid JSON response from {system}: {res.text[:100]}",
            system=system,
            upstream_status=res.status_code,
        ) from e
