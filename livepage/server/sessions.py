"""Active generation tracking: one in-flight generation per session."""

from __future__ import annotations

import logging

from livepage.stream.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class GenerationRegistry:
    """Maps session ids to the cancellation token of their live generation.

    Starting a generation for a session cancels the one it replaces; the
    old transcript is abandoned, never merged.
    """

    def __init__(self) -> None:
        self._active: dict[str, CancellationToken] = {}

    def __len__(self) -> int:
        return len(self._active)

    def begin(self, session_id: str) -> CancellationToken:
        previous = self._active.get(session_id)
        if previous is not None:
            logger.info("Cancelling superseded generation for session %s", session_id)
            previous.cancel("superseded by a new generation")
        token = CancellationToken()
        self._active[session_id] = token
        return token

    def cancel(self, session_id: str, reason: str = "cancelled by user") -> bool:
        token = self._active.pop(session_id, None)
        if token is None:
            return False
        token.cancel(reason)
        return True

    def end(self, session_id: str, token: CancellationToken) -> None:
        """Forget `token` if it is still the session's active generation."""
        if self._active.get(session_id) is token:
            del self._active[session_id]

    def is_active(self, session_id: str) -> bool:
        return session_id in self._active
