from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from rel.cli.commands._helpers import exit_code_for
from rel.core.config import BumpChoice, RunConfig
from rel.core.errors import ErrorCode
from rel.core.result import Err
from rel.output.console import ConsoleProtocol, RichConsole
from rel.release.orchestrator import load_run_config


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: RunConfig
    console: ConsoleProtocol


def resolve_root(root: Path | None) -> Path:
    candidate = root if root is not None else Path.cwd()
    try:
        resolved = candidate.expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --root: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    if not resolved.is_dir():
        typer.echo(f"error: --root '{resolved}' is not a directory", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    return resolved


def build_context(
    *,
    root: Path | None,
    bump: BumpChoice | None,
    dry_run: bool,
    assume_yes: bool,
    edit: bool | None,
) -> CLIContext:
    config = load_run_config(
        root=resolve_root(root),
        bump=bump,
        dry_run=dry_run,
        assume_yes=assume_yes,
        edit=edit,
    )
    if isinstance(config, Err):
        error = config.error
        typer.echo(f"error: {error.message}", err=True)
        if error.hint:
            typer.echo(f"hint: {error.hint}", err=True)
        raise typer.Exit(code=int(exit_code_for(error)))

    return CLIContext(config=config.value, console=RichConsole())
