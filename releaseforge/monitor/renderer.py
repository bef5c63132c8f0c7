"""Rich terminal renderer for release results.

Color scheme
------------
- green     : success / published
- red       : failed
- yellow    : notarizing
- cyan      : intermediate statuses
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from releaseforge.models.jobs import JobStatus, PipelineResult, PlatformId
from releaseforge.models.ledger import LedgerEntry

# ---------------------------------------------------------------------------
# Status -> Rich style mapping
# ---------------------------------------------------------------------------

_STATUS_STYLES: dict[JobStatus, str] = {
    JobStatus.PENDING: "dim",
    JobStatus.BUILT: "cyan",
    JobStatus.PACKAGED: "cyan",
    JobStatus.SIGNED: "cyan",
    JobStatus.NOTARIZING: "yellow",
    JobStatus.NOTARIZED: "cyan",
    JobStatus.RENAMED: "cyan",
    JobStatus.PUBLISHED: "bold green",
    JobStatus.FAILED: "bold red",
}


def _status_markup(result: PipelineResult) -> str:
    if result.succeeded:
        return "[bold green]success[/bold green]"
    return f"[bold red]{result.status}[/bold red]"


def _history_markup(history: Sequence[JobStatus]) -> str:
    parts = []
    for status in history:
        style = _STATUS_STYLES.get(status, "")
        parts.append(f"[{style}]{status.value}[/{style}]" if style else status.value)
    return " -> ".join(parts)


class ResultRenderer:
    """Renders ``PipelineResult`` maps and ledger entries.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def render_results(self, tag: str, results: Mapping[PlatformId, PipelineResult]) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Platform", min_width=10)
        table.add_column("Status", min_width=16, no_wrap=True)
        table.add_column("Published", min_width=20)
        table.add_column("SHA-256", width=14)
        table.add_column("Details")

        for platform, result in sorted(results.items(), key=lambda kv: kv[0].value):
            table.add_row(
                platform.value,
                _status_markup(result),
                str(result.published_key) if result.published_key else "[dim]-[/dim]",
                result.artifact_sha256[:12] or "[dim]-[/dim]",
                f"[red]{escape(result.error)}[/red]" if result.error else _history_markup(result.history),
            )

        failed = sum(1 for r in results.values() if not r.succeeded)
        summary = (
            "[bold green]All platforms published.[/bold green]"
            if failed == 0
            else f"[bold red]{failed} of {len(results)} platform(s) failed.[/bold red]"
        )
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title=f"[bold]Release {tag}[/bold]",
            border_style="green" if failed == 0 else "red",
            padding=(1, 2),
        )

    def print_results(self, tag: str, results: Mapping[PlatformId, PipelineResult]) -> None:
        self.console.print(self.render_results(tag, results))

    # ------------------------------------------------------------------
    # Ledger history
    # ------------------------------------------------------------------

    def render_history(self, run_id: str, entries: Sequence[LedgerEntry], chain_valid: bool) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Time (UTC)", width=10)
        table.add_column("Phase", min_width=9)
        table.add_column("Transition", min_width=24)
        table.add_column("Artifact", width=14)
        table.add_column("Detail")

        for i, entry in enumerate(entries):
            target = entry.state_transition.rsplit("->", 1)[-1]
            style = "bold red" if target == JobStatus.FAILED.value else ""
            transition = f"[{style}]{entry.state_transition}[/{style}]" if style else entry.state_transition
            table.add_row(
                str(i),
                entry.timestamp_utc.strftime("%H:%M:%S"),
                entry.phase,
                transition,
                entry.artifact_sha256[:12] or "[dim]-[/dim]",
                escape(entry.detail) if entry.detail else "[dim]-[/dim]",
            )

        chain = "[green]valid[/green]" if chain_valid else "[bold red]BROKEN[/bold red]"
        return Panel(
            Group(table, Text(""), Text.from_markup(f"[bold]Chain:[/bold] {chain}")),
            title=f"[bold]Ledger {run_id}[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    def print_history(self, run_id: str, entries: Sequence[LedgerEntry], chain_valid: bool) -> None:
        self.console.print(self.render_history(run_id, entries, chain_valid))
