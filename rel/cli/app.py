from __future__ import annotations

import typer

from rel.cli.commands.release import release

app = typer.Typer(
    add_completion=False,
    rich_markup_mode="rich",
    help="Resumable release orchestrator for npm packages.",
)

app.command()(release)


def main() -> None:
    app()
