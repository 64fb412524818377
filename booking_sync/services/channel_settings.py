"""Channel-manager credential setup and status."""

from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from booking_sync.cache import token_cache
from booking_sync.db.readers.properties import (
    get_first_property,
    get_property,
    get_property_with_channel_credentials,
)
from booking_sync.db.writers.properties import store_channel_credentials
from booking_sync.errors import NotFoundError
from booking_sync.network.auth import CHANNEL, exchange_invite_code

logger = structlog.get_logger(__name__)


def channel_settings(engine: Engine) -> dict[str, Any]:
    """Which property holds channel credentials. Secrets are never returned."""
    with engine.connect() as conn:
        prop = get_property_with_channel_credentials(conn)
    return {
        "configured": bool(prop and prop.get("channel_refresh_token")),
        "propertyId": prop["id"] if prop else None,
        "propertyName": prop["name"] if prop else None,
        "hasInviteCode": bool(prop and prop.get("channel_invite_code")),
    }


def setup_channel(
    engine: Engine, invite_code: str, property_id: Optional[str] = None
) -> dict[str, Any]:
    """
    Exchange a one-time invite code and store the refresh token on a property.

    The first property is used when none is named. Any cached access token
    for the property is dropped so the next call uses the new credential.

    Raises:
        ValidationError: Empty invite code
        NotFoundError: No such property (or no property at all)
        UpstreamError: The channel manager rejected the code
    """
    with engine.connect() as conn:
        prop = get_property(conn, property_id) if property_id else get_first_property(conn)
    if prop is None:
        raise NotFoundError(
            f"Property {property_id} not found" if property_id else "No property exists"
        )

    setup = exchange_invite_code(invite_code)
    with engine.begin() as conn:
        store_channel_credentials(conn, prop["id"], setup["refreshToken"], invite_code.strip())
    token_cache.invalidate(CHANNEL, prop["id"])

    logger.info("channel_credentials_stored", property_id=prop["id"])
    return channel_settings(engine)
