"""Generation driver.

Connects a StreamRequestor to an HtmlReassembler for one user-initiated
generation. Each chunk read is a suspension point that races the
cancellation token and an idle timeout; snapshots, scroll hints and the
terminal result are yielded to the caller and mirrored to optional
callbacks.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from livepage.errors import ContextTooLongError, LivepageError, ProviderError, StreamIdleTimeout
from livepage.providers.base import StreamRequestor
from livepage.schemas.config import GenerationSettings, ProviderConfig
from livepage.schemas.generation import GenerationRequest
from livepage.schemas.streaming import (
    GenerationResult,
    GenerationUpdate,
    GrowthHint,
    Snapshot,
    StreamState,
)
from livepage.stream.cancellation import CancellationToken
from livepage.stream.reassembler import HtmlReassembler

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[str], Any]
GrowthCallback = Callable[[], Any]


class _Cancelled(Exception):
    """Internal: the token fired while waiting for a chunk."""


def check_context_budget(request: GenerationRequest, provider: ProviderConfig) -> None:
    """Reject requests whose context would not fit the provider.

    Raises:
        ContextTooLongError: If prompt, previous prompt and prior page
            together reach the provider's max_tokens.
    """
    if request.context_size >= provider.max_tokens:
        raise ContextTooLongError(
            f"Context is too long. {provider.name} allows "
            f"{provider.max_tokens} max tokens."
        )


async def _notify(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Invoke a sync or async callback; its errors are logged, never raised."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if asyncio.iscoroutine(result):
            await result
    except Exception:
        logger.exception("Generation callback %r failed", callback)


async def _pull(chunks: AsyncIterator[bytes | str]) -> bytes | str:
    return await chunks.__anext__()


async def _next_chunk(
    chunks: AsyncIterator[bytes | str],
    token: CancellationToken,
    idle_timeout: float,
) -> bytes | str:
    """Wait for the next chunk, the token, or the idle timeout.

    Raises:
        StopAsyncIteration: At natural end of stream.
        _Cancelled: If the token fired first (or together with a chunk).
        StreamIdleTimeout: If nothing arrived in time.
    """
    if token.cancelled:
        raise _Cancelled

    read = asyncio.create_task(_pull(chunks))
    cancelled = asyncio.create_task(token.wait())
    try:
        done, _ = await asyncio.wait(
            {read, cancelled},
            timeout=idle_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        # The read must settle before the caller closes the stream
        read.cancel()
        await asyncio.gather(read, return_exceptions=True)
        raise
    finally:
        cancelled.cancel()

    if token.cancelled or read not in done:
        read.cancel()
        await asyncio.gather(read, return_exceptions=True)
        if token.cancelled:
            raise _Cancelled
        raise StreamIdleTimeout(idle_timeout)
    return read.result()


async def start_generation(
    request: GenerationRequest,
    token: CancellationToken | None = None,
    *,
    requestor: StreamRequestor,
    settings: GenerationSettings | None = None,
    on_snapshot: SnapshotCallback | None = None,
    on_growth: GrowthCallback | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> AsyncIterator[GenerationUpdate]:
    """Run one generation and yield its updates.

    Yields throttled Snapshot and GrowthHint items while streaming, then a
    final Snapshot (for completed runs, and for cancelled runs that left
    recoverable HTML), and always a GenerationResult last.

    Args:
        request: Prompt, prior page and model parameters.
        token: Cancellation signal; a fresh one is used when omitted.
        requestor: Opens the streaming request.
        settings: Throttle, growth, idle-timeout and close-tag tunables.
        on_snapshot: Called with the HTML of every published snapshot.
        on_growth: Called on every tick whose candidate exceeds the
            growth threshold.
        clock: Monotonic time source for the throttle.
    """
    settings = settings or GenerationSettings()
    token = token or CancellationToken()
    reassembler = HtmlReassembler(
        throttle_interval=settings.throttle_interval,
        growth_threshold=settings.growth_threshold,
        clock=clock,
    )
    reassembler.start()
    logger.info("Generation started via %s", requestor.display_name)

    result: GenerationResult | None = None
    chunks = requestor.stream(request, token)
    try:
        while True:
            try:
                chunk = await _next_chunk(chunks, token, settings.idle_timeout)
            except StopAsyncIteration:
                break
            except _Cancelled:
                result = reassembler.cancel()
                break
            except ProviderError as exc:
                result = reassembler.fail(exc.message, status_code=exc.status_code)
                break
            except LivepageError as exc:
                result = reassembler.fail(str(exc))
                break

            tick = reassembler.feed(chunk)
            if tick.growth:
                await _notify(on_growth)
                yield GrowthHint(candidate_length=tick.candidate_length)
            if tick.snapshot is not None:
                await _notify(on_snapshot, tick.snapshot.html)
                yield tick.snapshot

            if tick.provider_finished:
                logger.debug("Provider signalled end of stream")
                break
            if tick.document_closed and settings.stop_on_close_tag:
                logger.debug("Document closed; releasing the transport")
                break
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    if result is None:
        result = reassembler.finish()

    if result.html is not None and result.status != StreamState.FAILED:
        final = Snapshot(html=result.html, transcript_length=result.transcript_length, final=True)
        await _notify(on_snapshot, final.html)
        yield final
    yield result


async def run_generation(
    request: GenerationRequest,
    token: CancellationToken | None = None,
    *,
    requestor: StreamRequestor,
    settings: GenerationSettings | None = None,
    on_snapshot: Callable[[str], Awaitable[None] | None] | None = None,
    on_growth: Callable[[], Awaitable[None] | None] | None = None,
) -> GenerationResult:
    """Drive start_generation to the end and return only the result."""
    result: GenerationResult | None = None
    async for update in start_generation(
        request,
        token,
        requestor=requestor,
        settings=settings,
        on_snapshot=on_snapshot,
        on_growth=on_growth,
    ):
        if isinstance(update, GenerationResult):
            result = update
    if result is None:
        raise LivepageError("Generation ended without a result")
    return result
