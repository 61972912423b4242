"""Rate-limit adapters."""

from .limiter import FixedWindowRateLimiter

__all__ = ["FixedWindowRateLimiter"]
