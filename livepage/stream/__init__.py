"""Streaming HTML reconstruction: decode, reassemble, snapshot."""

from livepage.stream.cancellation import CancellationToken
from livepage.stream.decoder import SSEDecoder
from livepage.stream.html import (
    derive_snapshot,
    finalize_document,
    force_close,
    locate_renderable,
)
from livepage.stream.reassembler import HtmlReassembler, Tick
from livepage.stream.throttle import ThrottleClock

__all__ = [
    "CancellationToken",
    "HtmlReassembler",
    "SSEDecoder",
    "ThrottleClock",
    "Tick",
    "derive_snapshot",
    "finalize_document",
    "force_close",
    "locate_renderable",
]
