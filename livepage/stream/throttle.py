"""Publish-rate limiter for streaming snapshots."""

from __future__ import annotations

import time
from collections.abc import Callable


class ThrottleClock:
    """Tracks when a snapshot was last published for one generation.

    The first call to ready() is always true; after mark(), ready() stays
    false until `interval` seconds of monotonic time have passed.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._last_published: float | None = None

    @property
    def last_published(self) -> float | None:
        return self._last_published

    def ready(self) -> bool:
        if self._last_published is None:
            return True
        return self._clock() - self._last_published >= self.interval

    def mark(self) -> None:
        self._last_published = self._clock()

    def reset(self) -> None:
        self._last_published = None
