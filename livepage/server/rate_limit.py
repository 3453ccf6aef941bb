"""In-memory rate limiting for anonymous generations.

The store is an explicitly owned object (one per app instance) rather
than module state, so tests and restarts never share counters.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# hit() sweeps expired windows after this many calls
_SWEEP_EVERY = 256


@dataclass
class _RateLimitEntry:
    count: int
    expires_at: float


class RateLimitExceeded(Exception):
    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__("Rate limit exceeded")
        self.retry_after_seconds = retry_after_seconds


class RateLimitStore:
    """Fixed-window counters keyed by caller identity."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: dict[str, _RateLimitEntry] = {}
        self._hits_since_sweep = 0

    def __len__(self) -> int:
        return len(self._entries)

    def hit(self, key: str) -> int:
        """Count one action for `key` and return the count in this window.

        Raises:
            RateLimitExceeded: If the key already used its allowance.
        """
        now = self._clock()
        self._hits_since_sweep += 1
        if self._hits_since_sweep >= _SWEEP_EVERY:
            self.sweep()

        entry = self._entries.get(key)
        if entry and entry.expires_at > now:
            if entry.count >= self.limit:
                retry_after = int(entry.expires_at - now)
                logger.info("Rate limit reached for %s", key)
                raise RateLimitExceeded(max(retry_after, 1))
            entry.count += 1
            return entry.count

        self._entries[key] = _RateLimitEntry(count=1, expires_at=now + self.window_seconds)
        return 1

    def remaining(self, key: str) -> int:
        entry = self._entries.get(key)
        if entry is None or entry.expires_at <= self._clock():
            return self.limit
        return max(self.limit - entry.count, 0)

    def sweep(self) -> int:
        """Drop expired windows; returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._hits_since_sweep = 0
        if expired:
            logger.debug("Swept %d expired rate-limit windows", len(expired))
        return len(expired)

    def reset(self) -> None:
        """Clear all counters."""
        self._entries.clear()
        self._hits_since_sweep = 0
