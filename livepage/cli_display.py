"""Live terminal display for a streaming page generation.

Shows the current snapshot with HTML syntax highlighting, a progress
header, and a short activity log. The output panel follows the end of
the page once the generation reports growth; until then it shows the top.
"""

from __future__ import annotations

import time
from collections import deque

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from livepage.schemas.streaming import (
    GenerationResult,
    GenerationUpdate,
    GrowthHint,
    Snapshot,
    StreamState,
)

_STATE_MARKUP: dict[StreamState, str] = {
    StreamState.IDLE: "[dim]○ idle[/dim]",
    StreamState.STREAMING: "[bold cyan]◉ streaming[/bold cyan]",
    StreamState.COMPLETED: "[bold green]● completed[/bold green]",
    StreamState.CANCELLED: "[bold yellow]⊘ cancelled[/bold yellow]",
    StreamState.FAILED: "[bold red]✗ failed[/bold red]",
}


def visible_lines(html: str, max_lines: int, *, follow: bool) -> str:
    """The slice of `html` that fits in the output panel."""
    lines = html.splitlines()
    if len(lines) <= max_lines:
        return html
    if follow:
        return "\n".join(lines[-max_lines:])
    return "\n".join(lines[:max_lines])


class GenerationDisplay:
    """Rich Live view of one generation.

    Feed it every update yielded by start_generation via handle().
    """

    def __init__(self, console: Console, provider: str, max_lines: int = 40) -> None:
        self._console = console
        self._provider = provider
        self._max_lines = max_lines
        self._start_time = time.monotonic()
        self._state = StreamState.STREAMING
        self._html = ""
        self._snapshots = 0
        self._follow = False
        self._activity_log: deque[tuple[float, str]] = deque(maxlen=6)
        self._live: Live | None = None

    @property
    def snapshots(self) -> int:
        return self._snapshots

    @property
    def following(self) -> bool:
        return self._follow

    def __enter__(self) -> GenerationDisplay:
        self._start_time = time.monotonic()
        self._live = Live(
            self._build_layout(),
            console=self._console,
            refresh_per_second=8,
            transient=True,
        )
        self._live.__enter__()
        self._log(f"Requesting page from {self._provider}")
        return self

    def __exit__(self, *args: object) -> None:
        if self._live:
            self._live.__exit__(*args)
            self._live = None

    def handle(self, update: GenerationUpdate) -> None:
        if isinstance(update, GrowthHint):
            if not self._follow:
                self._log(f"Following output ({update.candidate_length:,} chars)")
            self._follow = True
        elif isinstance(update, Snapshot):
            self._html = update.html
            self._snapshots += 1
            if update.final:
                self._log("Final snapshot")
        elif isinstance(update, GenerationResult):
            self._state = update.status
            if update.error:
                self._log(f"[red]{update.error}[/red]")
            else:
                self._log(f"Generation {update.status}")
        self._refresh()

    def _log(self, message: str) -> None:
        elapsed = time.monotonic() - self._start_time
        self._activity_log.append((elapsed, message))

    def _refresh(self) -> None:
        if self._live:
            self._live.update(self._build_layout())

    # ── Layout builders ───────────────────────────────────────────

    def _build_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="progress", size=3),
            Layout(name="output", ratio=1),
            Layout(name="activity", size=8),
        )
        layout["progress"].update(self._build_progress_panel())
        layout["output"].update(self._build_output_panel())
        layout["activity"].update(self._build_activity_panel())
        return layout

    def _build_progress_panel(self) -> Panel:
        elapsed = time.monotonic() - self._start_time
        table = Table.grid(padding=(0, 2))
        table.add_column()
        table.add_column(justify="right")
        table.add_row(
            Text.from_markup(_STATE_MARKUP[self._state]),
            Text.from_markup(
                f"[dim]Elapsed:[/dim] {int(elapsed // 60)}:{int(elapsed % 60):02d}  "
                f"[dim]Snapshots:[/dim] {self._snapshots}  "
                f"[dim]Chars:[/dim] {len(self._html):,}"
            ),
        )
        return Panel(table, title="[bold blue]livepage[/bold blue]", border_style="blue")

    def _build_output_panel(self) -> Panel:
        if not self._html:
            return Panel(
                Text("Waiting for HTML...", style="dim", justify="center"),
                title="[bold]Preview source[/bold]",
                border_style="dim",
            )
        code = visible_lines(self._html, self._max_lines, follow=self._follow)
        return Panel(
            Syntax(code, "html", theme="monokai", word_wrap=False),
            title="[bold]Preview source[/bold]",
            border_style="green",
        )

    def _build_activity_panel(self) -> Panel:
        text = Text()
        for elapsed, message in self._activity_log:
            text.append(f"{elapsed:6.1f}s ", style="dim")
            text.append_text(Text.from_markup(message))
            text.append("\n")
        return Panel(text, title="[bold]Activity[/bold]", border_style="dim")
