"""Snapshot derivation from a partial transcript.

All functions here are pure: the same transcript always yields the same
snapshot. The repair is deliberately shallow. Only the document/body
boundary is closed; unclosed tags inside the body are left alone.
"""

from __future__ import annotations

import re

_DOCTYPE_RE = re.compile(r"<!doctype\s+html\b", re.IGNORECASE)
_HTML_OPEN_RE = re.compile(r"<html\b", re.IGNORECASE)
_BODY_OPEN_RE = re.compile(r"<body\b", re.IGNORECASE)
_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)
_HTML_CLOSE_RE = re.compile(r"</html\s*>", re.IGNORECASE)

# Greedy: runs to the rightmost </html>
_FULL_DOCUMENT_RE = re.compile(r"<!doctype\s+html\b.*</html\s*>", re.IGNORECASE | re.DOTALL)

# Tie-break order: first pattern that matches anywhere wins
_RENDERABLE_STARTS = (_DOCTYPE_RE, _HTML_OPEN_RE, _BODY_OPEN_RE)


def locate_renderable(transcript: str) -> str | None:
    """Return the renderable tail of the transcript, or None.

    Prefers a <!DOCTYPE html> declaration, then an <html tag, then a
    <body tag, regardless of which appears first. The match always
    extends to the end of the transcript.
    """
    for pattern in _RENDERABLE_STARTS:
        match = pattern.search(transcript)
        if match:
            return transcript[match.start():]
    return None


def force_close(fragment: str) -> str:
    """Append missing </body> and </html> so a partial page renders."""
    closed = fragment
    if _BODY_OPEN_RE.search(closed) and not _BODY_CLOSE_RE.search(closed):
        closed += "\n</body>"
    if not _HTML_CLOSE_RE.search(closed):
        closed += "\n</html>"
    return closed


def derive_snapshot(transcript: str) -> str | None:
    """Candidate snapshot for the current transcript, or None if nothing renders yet."""
    fragment = locate_renderable(transcript)
    if fragment is None:
        return None
    return force_close(fragment)


def contains_closing_html(text: str) -> bool:
    return _HTML_CLOSE_RE.search(text) is not None


def contains_html_open(text: str) -> bool:
    return _HTML_OPEN_RE.search(text) is not None


def finalize_document(transcript: str) -> str:
    """Reconcile the finished transcript into the final output.

    1. A complete <!DOCTYPE html> ... </html> document wins as-is.
    2. Otherwise, if both <html and <body appear, the whole transcript is
       force-closed.
    3. Otherwise the raw transcript is returned, which may be empty or
       not HTML at all.
    """
    match = _FULL_DOCUMENT_RE.search(transcript)
    if match:
        return match.group(0)
    if _HTML_OPEN_RE.search(transcript) and _BODY_OPEN_RE.search(transcript):
        return force_close(transcript)
    return transcript


def recover_partial(transcript: str) -> str | None:
    """Best-effort page for an interrupted generation.

    Returns None unless the transcript already holds an <html tag.
    """
    if not contains_html_open(transcript):
        return None
    match = _FULL_DOCUMENT_RE.search(transcript)
    if match:
        return match.group(0)
    return derive_snapshot(transcript)
