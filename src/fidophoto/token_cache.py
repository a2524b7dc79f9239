"""Cache for the shared admin access token used against the identity service.

One writer refreshes the token under a lock; everyone else reads the
cached value while it still has more than ``refresh_margin`` seconds to
live.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import Settings, get_settings
from .errors import TokenFetchError
from .logging import get_logger

logger = get_logger(__name__)

# Returns (access_token, expires_in_seconds)
TokenFetcher = Callable[[], tuple[str, float]]


@dataclass(frozen=True)
class CachedToken:
    """An access token and its absolute expiry (epoch seconds)."""

    value: str
    expires_at: float

    def is_fresh(self, now: float, margin: float) -> bool:
        return self.expires_at > now + margin


class TokenCache:
    """Single-writer cache around a token fetch function."""

    def __init__(
        self,
        fetch: TokenFetcher,
        refresh_margin: float = 120.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the token cache.

        Args:
            fetch: Obtains a new token; returns (access_token, expires_in)
            refresh_margin: Refresh when fewer than this many seconds remain
            clock: Time source, epoch seconds
        """
        self._fetch = fetch
        self._refresh_margin = refresh_margin
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: Optional[CachedToken] = None

    @classmethod
    def from_settings(
        cls,
        fetch: TokenFetcher,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ) -> "TokenCache":
        """Create a cache using the configured refresh margin.

        The margin is read from FIDOPHOTO_ADMIN_TOKEN_REFRESH_MARGIN.
        """
        settings = settings or get_settings()
        return cls(fetch, refresh_margin=settings.admin_token_refresh_margin, clock=clock)

    @property
    def refresh_margin(self) -> float:
        return self._refresh_margin

    @property
    def cached(self) -> Optional[CachedToken]:
        return self._cached

    def get(self) -> str:
        """Return a token with more than ``refresh_margin`` seconds to live.

        Raises:
            TokenFetchError: If a refresh was needed and the fetch failed
        """
        cached = self._cached
        if cached is not None and cached.is_fresh(self._clock(), self._refresh_margin):
            return cached.value

        with self._lock:
            # another caller may have refreshed while we waited
            cached = self._cached
            now = self._clock()
            if cached is not None and cached.is_fresh(now, self._refresh_margin):
                return cached.value

            try:
                value, expires_in = self._fetch()
            except TokenFetchError:
                raise
            except Exception as e:
                logger.error("admin_token_fetch_failed", error=str(e))
                raise TokenFetchError(details={"error": str(e)}) from e

            if not value:
                logger.error("admin_token_missing_in_response")
                raise TokenFetchError("Did not get access token in token response")

            self._cached = CachedToken(value=value, expires_at=now + float(expires_in))
            logger.info("admin_token_refreshed", expires_in=expires_in)
            return value

    def invalidate(self) -> None:
        """Drop the cached token so the next ``get`` fetches a new one."""
        with self._lock:
            self._cached = None
