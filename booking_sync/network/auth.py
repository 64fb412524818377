"""
Access tokens for the CRM and the channel manager.

Both systems exchange a stored long-lived credential for a short-lived
bearer token. Tokens live in the shared ``TokenCache``; a token that was just
rejected is refreshed instead of being handed out again.
"""

from typing import Any, Optional

import structlog

from booking_sync.cache import token_cache
from booking_sync.config import (
    CHANNEL_API_URL,
    CRM_ACCOUNTS_URL,
    CRM_CLIENT_ID,
    CRM_CLIENT_SECRET,
    CRM_REFRESH_TOKEN,
)
from booking_sync.errors import UpstreamError, ValidationError
from booking_sync.metrics import token_refreshes
from booking_sync.network.client import parse_json, raise_for_upstream_status, send_request

logger = structlog.get_logger(__name__)

CRM = "crm"
CHANNEL = "channel"


# =============================================================================
# CRM (OAuth refresh-token grant)
# =============================================================================


def request_crm_token() -> tuple[str, Optional[int]]:
    """
    Exchange the configured refresh token for a CRM access token.

    Returns:
        tuple: (access token, lifetime in seconds if reported)

    Raises:
        UpstreamError: The grant was rejected or the response had no token
    """
    if not CRM_REFRESH_TOKEN:
        raise UpstreamError("CRM credentials are not configured", system=CRM)

    logger.info("crm_token_requested", client_id=CRM_CLIENT_ID)
    res = send_request(
        CRM,
        "POST",
        f"{CRM_ACCOUNTS_URL}/oauth/v2/token",
        endpoint="oauth/token",
        params={
            "refresh_token": CRM_REFRESH_TOKEN,
            "client_id": CRM_CLIENT_ID,
            "client_secret": CRM_CLIENT_SECRET,
            "grant_type": "refresh_token",
        },
    )
    raise_for_upstream_status(CRM, "oauth/token", res)

    # The accounts server reports grant errors with a 200 and an "error" key
    data = parse_json(CRM, res) or {}
    token = data.get("access_token")
    if not isinstance(token, str):
        logger.error("crm_token_missing", error=data.get("error"))
        raise UpstreamError(
            f"CRM token refresh failed: {data.get('error', 'no access_token')}", system=CRM
        )
    return token, data.get("expires_in")


def refresh_crm_token() -> str:
    token_cache.invalidate(CRM)
    token, expires_in = request_crm_token()
    token_cache.set(CRM, "default", token, expires_in=expires_in)
    token_refreshes.labels(system=CRM).inc()
    logger.info("token_refreshed", system=CRM, cached=True)
    return token


def get_crm_token(prev_token: Optional[str] = None) -> str:
    """
    Get a valid CRM token, refreshing when missing, expiring or just rejected.

    Args:
        prev_token: Token that was just rejected by the API, if any

    Returns:
        str: Bearer token
    """
    cached = token_cache.get(CRM)
    if cached and cached != prev_token:
        logger.debug("token_cache_hit", system=CRM)
        return cached

    logger.debug("token_cache_miss", system=CRM)
    return refresh_crm_token()


# =============================================================================
# Channel manager (invite code -> refresh token -> access token)
# =============================================================================


def exchange_invite_code(invite_code: str) -> dict[str, Any]:
    """
    One-time setup: trade an invite code for a long-lived refresh token.

    Returns:
        dict[str, Any]: ``{"refreshToken": ..., "token": ..., "expiresIn": ...}``

    Raises:
        ValidationError: The invite code is empty
        UpstreamError: The channel manager rejected the code
    """
    invite_code = (invite_code or "").strip()
    if not invite_code:
        raise ValidationError("Invite code is required")

    logger.info("channel_setup_requested", invite_code_prefix=invite_code[:4])
    res = send_request(
        CHANNEL,
        "GET",
        f"{CHANNEL_API_URL}/authentication/setup",
        endpoint="authentication/setup",
        headers={"code": invite_code},
    )
    raise_for_upstream_status(CHANNEL, "authentication/setup", res)

    data = parse_json(CHANNEL, res) or {}
    if not data.get("refreshToken"):
        raise UpstreamError("Channel setup response had no refreshToken", system=CHANNEL)
    return data


def request_channel_token(refresh_token: str) -> tuple[str, Optional[int]]:
    res = send_request(
        CHANNEL,
        "GET",
        f"{CHANNEL_API_URL}/authentication/token",
        endpoint="authentication/token",
        headers={"refreshToken": refresh_token},
    )
    raise_for_upstream_status(CHANNEL, "authentication/token", res)

    data = parse_json(CHANNEL, res) or {}
    token = data.get("token")
    if not isinstance(token, str):
        raise UpstreamError("Channel token response had no token", system=CHANNEL)
    return token, data.get("expiresIn")


def get_channel_token(property_id: str, refresh_token: str, prev_token: Optional[str] = None) -> str:
    """
    Get a channel-manager access token for one property's stored credential.

    Args:
        property_id: Local property id, the cache key
        refresh_token: Long-lived token stored on the property
        prev_token: Token that was just rejected, if any

    Returns:
        str: Access token
    """
    cached = token_cache.get(CHANNEL, property_id)
    if cached and cached != prev_token:
        return cached

    token, expires_in = request_channel_token(refresh_token)
    token_cache.set(CHANNEL, property_id, token, expires_in=expires_in)
    token_refreshes.labels(system=CHANNEL).inc()
    logger.info("token_refreshed", system=CHANNEL, property_id=property_id)
    return token
