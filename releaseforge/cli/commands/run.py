"""``releaseforge run TAG`` — run the release pipelines for a tag.

Exits 0 only when every selected platform reports ``success``.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from releaseforge.config import settings
from releaseforge.core.errors import ReleaseError
from releaseforge.core.orchestrator import Orchestrator
from releaseforge.core.production_guard import ProductionConfigError
from releaseforge.models.jobs import PlatformId
from releaseforge.monitor.renderer import ResultRenderer

console = Console()


def run_cmd(
    tag: str = typer.Argument(
        ...,
        help="Release tag, e.g. v1.2.3 or refs/tags/v1.2.3-rc.1.",
    ),
    platform: list[PlatformId] | None = typer.Option(
        None,
        "--platform",
        "-p",
        case_sensitive=False,
        help="Platform to release; repeat for several. Defaults to all.",
    ),
) -> None:
    """Run build -> package -> sign -> [notarize] -> rename -> publish."""
    try:
        orchestrator = Orchestrator.from_settings(settings)
    except (ProductionConfigError, ReleaseError) as exc:
        console.print(f"[bold red]Cannot start release:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    console.print(f"[bold cyan]Releasing {tag}...[/bold cyan]")
    results = orchestrator.run_all(tag, platform or None)

    ResultRenderer(console=console).print_results(tag, results)
    if not results or not all(r.succeeded for r in results.values()):
        raise typer.Exit(code=1)
