"""``releaseforge history TAG PLATFORM`` — show the ledger for one run."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from releaseforge.config import settings
from releaseforge.core.errors import InvalidTag
from releaseforge.core.orchestrator import run_id_for
from releaseforge.core.run_ledger import LedgerIntegrityError, RunLedger
from releaseforge.models.jobs import PlatformId
from releaseforge.models.tags import ReleaseTag
from releaseforge.monitor.renderer import ResultRenderer

console = Console()


def _ledger_tag(tag: str) -> str:
    # Runs are keyed by the normalized tag; a tag that failed validation
    # was recorded as given.
    try:
        return str(ReleaseTag.parse(tag))
    except InvalidTag:
        return tag.strip()


def history_cmd(
    tag: str = typer.Argument(..., help="Release tag."),
    platform: PlatformId = typer.Argument(..., case_sensitive=False, help="Platform."),
) -> None:
    """Print every recorded transition and verify the hash chain."""
    if not settings.ledger_path.exists():
        console.print(f"[bold red]Ledger not found:[/bold red] {settings.ledger_path}")
        raise typer.Exit(code=1)

    ledger = RunLedger(settings.ledger_path)
    run_id = run_id_for(_ledger_tag(tag), platform)
    entries = ledger.get_run_entries(run_id)
    if not entries:
        console.print(f"[yellow]No ledger entries for {run_id}.[/yellow]")
        raise typer.Exit(code=1)

    try:
        chain_valid = ledger.verify_chain(run_id)
    except LedgerIntegrityError as exc:
        console.print(f"[bold red]{escape(str(exc))}[/bold red]")
        chain_valid = False

    ResultRenderer(console=console).print_history(run_id, entries, chain_valid)
    if not chain_valid:
        raise typer.Exit(code=1)
