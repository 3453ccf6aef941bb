"""Incremental HTML reassembler.

Consumes raw stream chunks for one generation, keeps the append-only
transcript, derives force-closed snapshots, throttles how often they are
published, and produces the terminal result.

The reassembler is synchronous and does no I/O. The async driver in
livepage.generation owns the transport and the callbacks.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from livepage.schemas.streaming import GenerationResult, Snapshot, StreamState
from livepage.stream.decoder import SSEDecoder
from livepage.stream.html import (
    contains_closing_html,
    derive_snapshot,
    finalize_document,
    recover_partial,
)
from livepage.stream.throttle import ThrottleClock

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_INTERVAL = 1.0
DEFAULT_GROWTH_THRESHOLD = 200


@dataclass
class Tick:
    """What one fed chunk produced."""

    fragments: list[str] = field(default_factory=list)
    snapshot: Snapshot | None = None
    candidate_length: int = 0
    growth: bool = False
    document_closed: bool = False
    provider_finished: bool = False


class HtmlReassembler:
    """Rebuilds a renderable page from a live token stream.

    One instance serves exactly one generation: Idle -> Streaming on
    start(), then finish(), cancel() or fail() moves it to a terminal
    state. Terminal calls are idempotent and return the cached result.
    """

    def __init__(
        self,
        *,
        throttle_interval: float = DEFAULT_THROTTLE_INTERVAL,
        growth_threshold: int = DEFAULT_GROWTH_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.growth_threshold = growth_threshold
        self._throttle = ThrottleClock(throttle_interval, clock)
        self._decoder = SSEDecoder()
        self._transcript = ""
        self._fragment_count = 0
        self._state = StreamState.IDLE
        self._document_closed = False
        self._last_published_html: str | None = None
        self._result: GenerationResult | None = None

    # ── State ─────────────────────────────────────────────────

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def fragment_count(self) -> int:
        return self._fragment_count

    @property
    def document_closed(self) -> bool:
        """True once </html> has appeared in the transcript."""
        return self._document_closed

    @property
    def provider_finished(self) -> bool:
        """True once the provider sent its end-of-stream sentinel."""
        return self._decoder.finished

    @property
    def malformed_lines(self) -> int:
        return self._decoder.malformed_lines

    @property
    def result(self) -> GenerationResult | None:
        return self._result

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self) -> None:
        if self._state != StreamState.IDLE:
            raise RuntimeError(f"Cannot start a generation in state {self._state}")
        self._state = StreamState.STREAMING
        self._throttle.reset()

    def feed(self, chunk: bytes | str) -> Tick:
        """Process one raw chunk in arrival order."""
        if self._state != StreamState.STREAMING:
            if self._state == StreamState.IDLE:
                raise RuntimeError("Generation has not been started")
            logger.debug("Ignoring chunk after %s", self._state)
            return Tick()

        fragments = self._decoder.feed(chunk)
        tick = Tick(fragments=fragments, provider_finished=self._decoder.finished)
        if fragments:
            self._append(fragments)

        tick.document_closed = self._document_closed
        candidate = derive_snapshot(self._transcript)
        if candidate is None:
            return tick

        tick.candidate_length = len(candidate)
        tick.growth = len(candidate) > self.growth_threshold
        if candidate != self._last_published_html and self._throttle.ready():
            self._throttle.mark()
            self._last_published_html = candidate
            tick.snapshot = Snapshot(html=candidate, transcript_length=len(self._transcript))
        return tick

    def finish(self) -> GenerationResult:
        """Natural end of stream: reconcile and complete."""
        if self._result is not None:
            return self._result
        self._require_streaming()

        fragments = self._decoder.flush()
        if fragments:
            self._append(fragments)

        html = finalize_document(self._transcript)
        logger.info(
            "Generation completed (%d chars, %d fragments, %d malformed lines)",
            len(self._transcript), self._fragment_count, self.malformed_lines,
        )
        return self._terminate(StreamState.COMPLETED, html=html)

    def cancel(self) -> GenerationResult:
        """Stop consuming; keep whatever page is recoverable."""
        if self._result is not None:
            return self._result
        self._require_streaming()

        html = recover_partial(self._transcript)
        logger.info(
            "Generation cancelled after %d chars (partial page %s)",
            len(self._transcript), "recovered" if html is not None else "unavailable",
        )
        return self._terminate(StreamState.CANCELLED, html=html)

    def fail(self, message: str, *, status_code: int | None = None) -> GenerationResult:
        """Transport-level failure."""
        if self._result is not None:
            return self._result
        self._require_streaming()

        html = recover_partial(self._transcript) if self._fragment_count else None
        logger.warning("Generation failed: %s", message)
        return self._terminate(
            StreamState.FAILED, html=html, error=message, status_code=status_code,
        )

    # ── Internals ─────────────────────────────────────────────

    def _append(self, fragments: list[str]) -> None:
        for fragment in fragments:
            self._transcript += fragment
            self._fragment_count += 1
        if not self._document_closed and contains_closing_html(self._transcript):
            self._document_closed = True
            logger.info("Closing </html> tag received after %d chars", len(self._transcript))

    def _require_streaming(self) -> None:
        if self._state != StreamState.STREAMING:
            raise RuntimeError(f"No generation in progress (state {self._state})")

    def _terminate(
        self,
        status: StreamState,
        *,
        html: str | None,
        error: str | None = None,
        status_code: int | None = None,
    ) -> GenerationResult:
        self._state = status
        self._result = GenerationResult(
            status=status,
            html=html,
            error=error,
            status_code=status_code,
            transcript_length=len(self._transcript),
            malformed_lines=self.malformed_lines,
        )
        return self._result
