"""Main Typer application — imports and registers all CLI commands.

Entry point: ``releaseforge`` (configured via pyproject.toml scripts).

Commands: run, validate-tag, history.
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from releaseforge.cli.commands.history import history_cmd
from releaseforge.cli.commands.run import console, run_cmd
from releaseforge.cli.commands.validate_tag import validate_tag_cmd
from releaseforge.config import settings

app = typer.Typer(
    name="releaseforge",
    help="releaseforge: build, sign, notarize and publish tagged releases.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Install Rich logging at the configured level."""
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


# Register subcommands
app.command(name="run", help="Build, sign and publish a tag for each platform.")(run_cmd)
app.command(name="validate-tag", help="Check a tag without running anything.")(validate_tag_cmd)
app.command(name="history", help="Show the ledger for <tag>/<platform>.")(history_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
