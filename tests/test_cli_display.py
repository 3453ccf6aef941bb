"""Tests for the live generation display."""

from __future__ import annotations

from io import StringIO

from rich.console import Console

from livepage.cli_display import GenerationDisplay, visible_lines
from livepage.schemas.streaming import GenerationResult, GrowthHint, Snapshot, StreamState


def _console() -> Console:
    return Console(file=StringIO(), width=120, force_terminal=False)


class TestVisibleLines:
    def test_short_html_unchanged(self):
        assert visible_lines("a\nb", 5, follow=False) == "a\nb"

    def test_top_when_not_following(self):
        html = "\n".join(str(i) for i in range(10))
        assert visible_lines(html, 3, follow=False) == "0\n1\n2"

    def test_tail_when_following(self):
        html = "\n".join(str(i) for i in range(10))
        assert visible_lines(html, 3, follow=True) == "7\n8\n9"


class TestGenerationDisplay:
    def test_counts_snapshots(self):
        display = GenerationDisplay(_console(), "Test")
        display.handle(Snapshot(html="<html></html>", transcript_length=13))
        display.handle(Snapshot(html="<html>x</html>", transcript_length=14, final=True))
        assert display.snapshots == 2

    def test_growth_switches_to_follow(self):
        display = GenerationDisplay(_console(), "Test")
        assert not display.following
        display.handle(GrowthHint(candidate_length=500))
        assert display.following

    def test_live_context_renders(self):
        console = _console()
        with GenerationDisplay(console, "Test") as display:
            display.handle(Snapshot(html="<html><body>hi</body></html>", transcript_length=28))
            display.handle(GenerationResult(status=StreamState.COMPLETED, html="<html></html>"))
        assert display.snapshots == 1

    def test_failure_logged(self):
        display = GenerationDisplay(_console(), "Test")
        display.handle(GenerationResult(status=StreamState.FAILED, error="Invalid API key"))
        panel = display._build_activity_panel()
        console = _console()
        console.print(panel)
        assert "Invalid API key" in console.file.getvalue()
