"""Cooperative cancellation signal for one generation."""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class CancellationToken:
    """Set-once flag that a generation's read loop races against.

    Cancelling is idempotent and never raises. Must be created and
    awaited on the same event loop.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        logger.debug("Cancellation requested: %s", reason)

    async def wait(self) -> None:
        await self._event.wait()
