"""
Rate limiter adapter - Implements RateLimiter protocol.

Fixed-window counting via the `limits` package. The default `memory://`
storage counts per process; point `rate_limit_storage_uri` at a shared
backend (e.g. redis://) when several workers must share one limit.
"""

import logging

from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter as FixedWindowStrategy

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """
    Implements RateLimiter protocol with per-(action, key) fixed windows.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, limit: int, window_seconds: int, storage_uri: str = "memory://") -> None:
        self.item = RateLimitItemPerSecond(limit, window_seconds)
        self.storage = storage_from_string(storage_uri)
        self._strategy = FixedWindowStrategy(self.storage)

    def is_limited(self, action: str, key: str) -> bool:
        """Count one hit; True once more than `limit` hits land in the current window."""
        limited = not self._strategy.hit(self.item, action, key)
        if limited:
            logger.info("Rate limit %s reached for action %s", self.item, action)
        return limited

    def reset(self) -> None:
        """Clear every counter."""
        self.storage.reset()
