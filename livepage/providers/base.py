"""Abstract base class for stream requestors.

A requestor opens exactly one streaming chat-completion request per
generation and hands back the raw response body as an async sequence of
chunks. The reassembler never talks to a provider directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from livepage.schemas.config import ProviderConfig
from livepage.schemas.generation import GenerationRequest
from livepage.stream.cancellation import CancellationToken


class StreamRequestor(ABC):
    """Interface for anything that can stream a generation's raw body.

    Initialized from a ProviderConfig loaded from providers.toml. Request
    model parameters override the config per call.
    """

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config

    # ── Identity ──────────────────────────────────────────────

    @property
    def provider_key(self) -> str:
        return self._config.key

    @property
    def display_name(self) -> str:
        return self._config.name

    @property
    def config(self) -> ProviderConfig:
        """The full ProviderConfig backing this requestor."""
        return self._config

    # ── Core interface ────────────────────────────────────────

    @abstractmethod
    def stream(
        self,
        request: GenerationRequest,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[bytes | str]:
        """Start the request and yield raw body chunks as they arrive.

        The sequence is lazy, finite and not restartable. It stops
        yielding once `token` is cancelled.

        Raises:
            ProviderError: On a non-success status (before any chunk is
                yielded) or a transport failure.
        """
