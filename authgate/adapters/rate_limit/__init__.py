"""Rate limiting adapters.

The HTTP layer depends on ``AbstractRateLimiter`` only, so the in-memory
fixed-window limiter can later be replaced by a shared store (e.g. Redis)
without touching the middleware.
"""

from authgate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from authgate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitResult",
]
