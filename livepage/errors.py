"""Exception hierarchy for livepage.

Line-level stream problems never surface here; the decoder recovers from
them. These exceptions cover transport, configuration and request-shape
failures that abort a generation.
"""

from __future__ import annotations


class LivepageError(Exception):
    """Base exception for all application-specific errors."""


class ProviderError(LivepageError):
    """The chat-completion endpoint refused the request or the transport failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ContextTooLongError(LivepageError):
    """Prompt plus prior context exceeds what the provider accepts."""


class ConfigurationError(LivepageError):
    """A provider is unknown or has no API key configured."""


class StreamIdleTimeout(LivepageError):
    """No chunk arrived within the idle timeout."""

    def __init__(self, seconds: float) -> None:
        super().__init__(f"No data received from the provider for {seconds:g}s")
        self.seconds = seconds
