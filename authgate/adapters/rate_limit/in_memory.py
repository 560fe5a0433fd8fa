"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit,
  and a restart resets every counter.
- Thread-safe: the check-and-increment runs under a lock.
- Memory is bounded by a periodic sweep of expired entries and a hard cap
  on tracked keys (least recently seen keys are evicted first).
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from authgate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key in a fixed window.

    Each key's window opens on its first request and lasts ``window_ms``.
    Every request is counted before the threshold check, so rejected
    requests still consume budget for the rest of the window.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_ms: int,
        max_entries: int | None = 100_000,
        sweep_interval_ms: int = 60_000,
        idle_grace_ms: int = 0,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_requests: Requests allowed per window for a single key.
            window_ms: Window length in milliseconds.
            max_entries: Hard cap on tracked keys (None disables the cap).
            sweep_interval_ms: Minimum time between expired-entry sweeps.
            idle_grace_ms: How long past its reset an entry survives a sweep.
            clock: Time source returning epoch milliseconds.

        Raises:
            ValueError: If any bound is invalid.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if sweep_interval_ms < 0 or idle_grace_ms < 0:
            raise ValueError("sweep_interval_ms and idle_grace_ms must be >= 0")

        self._max_requests = max_requests
        self._window_ms = window_ms
        self._max_entries = max_entries
        self._sweep_interval_ms = sweep_interval_ms
        self._idle_grace_ms = idle_grace_ms
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: OrderedDict[str, RateLimitEntry] = OrderedDict()
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryFixedWindowRateLimiter(max_requests={self._max_requests}, "
            f"window_ms={self._window_ms}, size={len(self._entries)})"
        )

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def get_entry(self, key: str) -> RateLimitEntry | None:
        """Return a copy of the stored entry for ``key`` (for inspection)."""
        with self._lock:
            entry = self._entries.get(key)
            return None if entry is None else RateLimitEntry(entry.count, entry.reset_at)

    def sweep(self, now: float | None = None) -> int:
        """Drop entries whose window ended more than ``idle_grace_ms`` ago.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock() if now is None else now
            cutoff = now - self._idle_grace_ms
            expired = [k for k, e in self._entries.items() if e.reset_at <= cutoff]
            for key in expired:
                del self._entries[key]
            self._last_sweep = now

        if expired:
            logger.debug(
                "rate_limit.sweep",
                extra={"removed": len(expired), "remaining_keys": len(self._entries)},
            )
        return len(expired)

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep >= self._sweep_interval_ms:
            self.sweep(now)

    def _enforce_cap(self) -> None:
        if self._max_entries is None:
            return
        evicted = 0
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
            evicted += 1
        if evicted:
            logger.info(
                "rate_limit.evicted",
                extra={"evicted": evicted, "max_entries": self._max_entries},
            )

    def _result(self, entry: RateLimitEntry, now: float) -> RateLimitResult:
        allowed = entry.count <= self._max_requests
        retry_after = None
        if not allowed:
            retry_after = max(0, int(math.ceil((entry.reset_at - now) / 1000)))
        return RateLimitResult(
            allowed=allowed,
            limit=self._max_requests,
            remaining=max(0, self._max_requests - entry.count),
            reset_at=int(entry.reset_at),
            retry_after_seconds=retry_after,
        )

    def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it is allowed.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)

            entry = self._entries.get(key)
            if entry is None or entry.reset_at <= now:
                entry = RateLimitEntry(count=1, reset_at=now + self._window_ms)
                self._entries[key] = entry
            else:
                entry.count += 1
            self._entries.move_to_end(key)
            self._enforce_cap()

            return self._result(entry, now)
