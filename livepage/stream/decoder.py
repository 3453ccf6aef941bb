"""Chunk decoder for chat-completion streams.

Turns raw transport chunks into delta-text fragments. Handles the three
shapes providers send: SSE `data:` lines carrying JSON deltas, bare JSON
objects per chunk, and unframed text.

Incomplete trailing lines are carried over between chunks, so the
fragments produced never depend on where the transport split the bytes.
"""

from __future__ import annotations

import codecs
import json
import logging
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

# SSE field names; a `:`-prefixed line is a comment
_SSE_FIELDS = ("data:", "event:", "id:", "retry:", ":")

# Longest malformed line echoed into the log
_LOG_LINE_LIMIT = 200


class Framing(StrEnum):
    """Wire shape of the stream, decided from its first non-blank line."""

    SSE = "sse"
    BARE = "bare"


def _is_sse_line(line: str) -> bool:
    return line.startswith(_SSE_FIELDS)


def _could_become_sse_line(partial: str) -> bool:
    """True if more input could still turn `partial` into an SSE field line."""
    return any(field.startswith(partial) or partial.startswith(field) for field in _SSE_FIELDS)


def extract_delta_content(data: Any, *, allow_message: bool = False) -> str:
    """Pull the delta text out of a decoded chat-completion chunk.

    Reads `choices[0].delta.content`; with `allow_message`, also accepts
    the non-streaming `choices[0].message.content` shape.
    """
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    choice = choices[0]
    if not isinstance(choice, dict):
        return ""

    paths = ("message", "delta") if allow_message else ("delta",)
    for key in paths:
        part = choice.get(key)
        if isinstance(part, dict):
            content = part.get("content")
            if isinstance(content, str) and content:
                return content
    return ""


class SSEDecoder:
    """Stateful decoder for one stream.

    Feed it chunks in arrival order; each call returns the fragments that
    became complete. Call flush() once at end of stream.
    """

    def __init__(self) -> None:
        self._bytes = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._framing: Framing | None = None
        self._finished = False
        self.malformed_lines = 0

    @property
    def framing(self) -> Framing | None:
        return self._framing

    @property
    def finished(self) -> bool:
        """True once the provider's end-of-stream sentinel was seen."""
        return self._finished

    def feed(self, chunk: bytes | str) -> list[str]:
        """Decode one chunk into zero or more delta fragments."""
        if isinstance(chunk, str):
            text = chunk
        else:
            text = self._bytes.decode(chunk)
        return self._consume(text, final=False)

    def flush(self) -> list[str]:
        """Drain buffered bytes and any unterminated last line."""
        text = self._bytes.decode(b"", final=True)
        return self._consume(text, final=True)

    # ── Internals ─────────────────────────────────────────────

    def _consume(self, text: str, *, final: bool) -> list[str]:
        if self._finished:
            return []

        buffer = self._pending + text
        self._pending = ""
        if not buffer:
            return []

        if self._framing is None:
            self._framing = self._detect(buffer, final=final)
            if self._framing is None:
                self._pending = buffer
                return []
            logger.debug("Detected %s stream framing", self._framing)

        if self._framing == Framing.BARE:
            if any(line.startswith("data:") for line in buffer.split("\n")):
                logger.debug("Switching to SSE framing mid-stream")
                self._framing = Framing.SSE
            else:
                return self._decode_bare(buffer)

        lines = buffer.split("\n")
        if not final:
            self._pending = lines.pop()

        fragments: list[str] = []
        for line in lines:
            fragment = self._decode_line(line.rstrip("\r"))
            if fragment:
                fragments.append(fragment)
            if self._finished:
                self._pending = ""
                break
        return fragments

    def _detect(self, buffer: str, *, final: bool) -> Framing | None:
        lines = buffer.split("\n")
        complete, partial = lines[:-1], lines[-1]
        for line in complete:
            line = line.strip()
            if line:
                return Framing.SSE if _is_sse_line(line) else Framing.BARE

        partial = partial.lstrip()
        if final:
            return Framing.SSE if _is_sse_line(partial) else Framing.BARE
        if not partial or _could_become_sse_line(partial):
            return None
        return Framing.BARE

    def _decode_line(self, line: str) -> str:
        if not line.startswith("data:"):
            # Blank separators, comments, event/id/retry fields
            return ""

        payload = line[5:]
        if payload.startswith(" "):
            payload = payload[1:]
        if payload.strip() == DONE_SENTINEL:
            logger.debug("Received end-of-stream sentinel")
            self._finished = True
            return ""
        if not payload.strip():
            return ""

        try:
            data = json.loads(payload)
        except ValueError:
            self.malformed_lines += 1
            logger.warning(
                "Skipping malformed stream line: %s", line[:_LOG_LINE_LIMIT]
            )
            return ""

        if isinstance(data, dict) and "error" in data and "choices" not in data:
            logger.warning("Provider reported an in-stream error: %s", data["error"])
            return ""
        return extract_delta_content(data)

    def _decode_bare(self, text: str) -> list[str]:
        if not text.strip():
            return []
        try:
            data = json.loads(text)
        except ValueError:
            return [text]

        if not isinstance(data, dict):
            return [text]
        if "choices" in data:
            content = extract_delta_content(data, allow_message=True)
            return [content] if content else []
        if "error" in data:
            logger.warning("Provider reported an error: %s", data["error"])
        return []
