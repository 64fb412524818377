"""
In-memory access-token cache with expiry and a safety margin.

Both external systems hand out short-lived bearer tokens in exchange for a
stored long-lived credential. Tokens are cached per (system, key) and treated
as expired ``margin_seconds`` before their real expiry so an in-flight request
never carries a token that dies mid-call.

For distributed deployments with multiple instances, consider migrating to Redis.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from booking_sync.config import TOKEN_EXPIRY_MARGIN_SECONDS
from booking_sync.utils.datetime import utc_now


class TokenCache:
    """
    In-memory token cache keyed by ``(system, key)``.

    Example:
        >>> cache = TokenCache(margin_seconds=300)
        >>> cache.set("crm", "default", "token-abc", expires_in=3600)
        >>> cache.get("crm", "default")
        'token-abc'
        >>> cache.invalidate("crm", "default")
    """

    def __init__(self, margin_seconds: int = 300, default_ttl_seconds: int = 3600):
        self.margin = timedelta(seconds=margin_seconds)
        self.default_ttl = timedelta(seconds=default_ttl_seconds)
        self._cache: dict[tuple[str, str], tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, system: str, key: str = "default") -> str | None:
        """
        Get cached token if it is not within the safety margin of expiry.

        Returns:
            Cached token string, or None when missing or (nearly) expired
        """
        with self._lock:
            entry = self._cache.get((system, key))
            if entry is None:
                return None
            token, expires_at = entry
            if utc_now() < expires_at - self.margin:
                return token
            del self._cache[(system, key)]
            return None

    def set(
        self, system: str, key: str, token: str, expires_in: int | float | None = None
    ) -> None:
        """
        Cache a token.

        Args:
            system: External system name ("crm", "channel")
            key: Credential key within the system (e.g. property id)
            token: Bearer token
            expires_in: Lifetime in seconds as reported by the issuer
        """
        ttl = timedelta(seconds=expires_in) if expires_in else self.default_ttl
        with self._lock:
            self._cache[(system, key)] = (token, utc_now() + ttl)

    def invalidate(self, system: str, key: str = "default") -> None:
        """Drop a token, e.g. after the issuer rejected it."""
        with self._lock:
            self._cache.pop((system, key), None)

    def clear(self) -> None:
        """Clear all cached tokens. Useful for testing."""
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)


token_cache = TokenCache(margin_seconds=TOKEN_EXPIRY_MARGIN_SECONDS)
