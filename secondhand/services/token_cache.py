"""In-memory cache of OAuth bearer tokens.

Tokens are keyed by client id and treated as expired once their remaining
lifetime drops below the refresh margin, so callers never send a token that
is about to lapse mid-request.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from ..models import CachedToken, utc_now

logger = logging.getLogger(__name__)

# Upper bound for the proactive refresh margin.
MAX_REFRESH_MARGIN = timedelta(seconds=60)

TokenFetcher = Callable[[], Awaitable[tuple[str, float]]]


class TokenCache:
    """Process-scoped bearer token store with proactive refresh.

    Concurrent refreshes for one key are tolerated: each fetch yields an
    equivalent token and the last writer wins.
    """

    def __init__(
        self,
        refresh_margin: timedelta | float = MAX_REFRESH_MARGIN,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize token cache.

        Args:
            refresh_margin: Remaining lifetime below which a token is refreshed,
                as a timedelta or seconds. Clamped to 60 seconds.
            clock: Source of the current UTC time.
        """
        if not isinstance(refresh_margin, timedelta):
            refresh_margin = timedelta(seconds=refresh_margin)
        self.refresh_margin = min(refresh_margin, MAX_REFRESH_MARGIN)
        self._clock = clock
        self._tokens: dict[str, CachedToken] = {}

    def get(self, key: str) -> CachedToken | None:
        """Get a token that is still safely usable.

        Args:
            key: Cache key, usually the OAuth client id.

        Returns:
            Cached token, or None when absent or expiring within the margin.
        """
        token = self._tokens.get(key)
        if token is None:
            return None
        if token.expires_within(self.refresh_margin, now=self._clock()):
            logger.debug(f"Token for {key} expires soon, refresh required")
            return None
        return token

    def set(self, key: str, value: str, expires_in: float) -> CachedToken:
        token = CachedToken(
            value=value, expires_at=self._clock() + timedelta(seconds=expires_in)
        )
        self._tokens[key] = token
        return token

    async def get_or_refresh(self, key: str, fetch: TokenFetcher) -> str:
        """Return a usable bearer value, fetching a new one when needed.

        Args:
            key: Cache key, usually the OAuth client id.
            fetch: Coroutine factory returning ``(token, expires_in_seconds)``.

        Returns:
            Bearer token value.
        """
        cached = self.get(key)
        if cached is not None:
            return cached.value

        value, expires_in = await fetch()
        token = self.set(key, value, expires_in)
        logger.info(f"Refreshed token for {key}, valid until {token.expires_at.isoformat()}")
        return token.value

    def invalidate(self, key: str) -> None:
        self._tokens.pop(key, None)

    def clear(self) -> None:
        self._tokens.clear()
