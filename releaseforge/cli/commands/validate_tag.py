"""``releaseforge validate-tag TAG``."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from releaseforge.core.errors import InvalidTag
from releaseforge.models.tags import ReleaseTag

console = Console()


def validate_tag_cmd(
    tag: str = typer.Argument(..., help="Tag or ref to check."),
) -> None:
    """Print the parsed version, or exit 1 if the tag is invalid."""
    try:
        parsed = ReleaseTag.parse(tag)
    except InvalidTag as exc:
        console.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=1)

    kind = "pre-release" if parsed.is_prerelease else "release"
    console.print(
        f"[green]{parsed}[/green] {kind} "
        f"(major={parsed.major}, minor={parsed.minor}, patch={parsed.patch}"
        + (f", suffix={parsed.suffix}" if parsed.suffix else "")
        + ")"
    )
