from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from types import FrameType
from typing import cast

import typer

from rel import __version__
from rel.cli.commands._helpers import exit_code_for, exit_with_code, fail, report_error
from rel.cli.context import CLIContext, build_context
from rel.core.config import BumpChoice
from rel.core.errors import ErrorCode
from rel.core.result import Err
from rel.output.console import ConsoleProtocol, Style
from rel.output.log import setup_logging
from rel.release.orchestrator import Command, build_step_context, execute, read_status
from rel.release.pipeline import ReleaseStatus
from rel.release.steps import STEPS


def release(
    patch: bool = typer.Option(False, "--patch", help="Patch release (default)."),
    minor: bool = typer.Option(False, "--minor", help="Minor release."),
    major: bool = typer.Option(False, "--major", help="Major release."),
    auto: bool = typer.Option(False, "--auto", help="Pick the bump from commit messages."),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would happen without changing anything."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Publish without asking."),
    no_edit: bool = typer.Option(False, "--no-edit", help="Do not open the changeset in $EDITOR."),
    step: str | None = typer.Option(None, "--step", metavar="NAME", help="Run one step only."),
    from_step: str | None = typer.Option(
        None, "--from", metavar="NAME", help="Run from this step to the end."
    ),
    status: bool = typer.Option(False, "--status", help="Show the release in progress."),
    rollback: bool = typer.Option(False, "--rollback", help="Undo the release in progress."),
    list_steps: bool = typer.Option(False, "--list-steps", help="List the release steps."),
    root: Path | None = typer.Option(
        None, "--root", help="Package checkout to release (default: current directory)."
    ),
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    """Release the package: changeset, build, version, publish, tag, GitHub release.

    Without a mode flag, resumes the release in progress or starts a new one.
    """
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    bump = _bump_choice(patch=patch, minor=minor, major=major, auto=auto)
    command = _command(
        step=step,
        from_step=from_step,
        status=status,
        rollback=rollback,
        list_steps=list_steps,
    )

    if list_steps:
        _print_steps()
        return

    ctx = build_context(
        root=root,
        bump=bump,
        dry_run=dry_run,
        assume_yes=yes,
        edit=False if no_edit else None,
    )

    if status:
        print_status(ctx.console, read_status(ctx.config))
        return

    assert command is not None
    _run(ctx, command)


def _bump_choice(*, patch: bool, minor: bool, major: bool, auto: bool) -> BumpChoice | None:
    flags = (("patch", patch), ("minor", minor), ("major", major), ("auto", auto))
    chosen = [name for name, on in flags if on]
    if len(chosen) > 1:
        fail("choose at most one of --patch, --minor, --major, --auto")
    return cast(BumpChoice, chosen[0]) if chosen else None


def _command(
    *,
    step: str | None,
    from_step: str | None,
    status: bool,
    rollback: bool,
    list_steps: bool,
) -> Command | None:
    modes = [
        flag
        for flag, on in (
            ("--step", step is not None),
            ("--from", from_step is not None),
            ("--status", status),
            ("--rollback", rollback),
            ("--list-steps", list_steps),
        )
        if on
    ]
    if len(modes) > 1:
        fail(f"{' and '.join(modes)} cannot be combined")

    if step is not None:
        return Command(mode="step", step=step)
    if from_step is not None:
        return Command(mode="from", step=from_step)
    if rollback:
        return Command(mode="rollback")
    if status or list_steps:
        return None
    return Command(mode="resume")


def _run(ctx: CLIContext, command: Command) -> None:
    console = ctx.console
    setup_logging(ctx.config.log_path)
    if ctx.config.dry_run:
        console.dry_run("nothing will be changed")

    step_ctx = build_step_context(ctx.config, console)
    try:
        with _sigterm_as_interrupt():
            result = execute(command, ctx=step_ctx)
    except (KeyboardInterrupt, typer.Abort):
        # typer.Abort is what Ctrl-C raises inside a confirmation prompt.
        console.newline()
        console.warning("interrupted; the state is kept as of the last completed step")
        console.print("Run rel to resume, or rel --rollback to undo.", Style.DIM)
        exit_with_code(ErrorCode.STEP_FAILED)

    if isinstance(result, Err):
        report_error(console, result.error)
        exit_with_code(exit_code_for(result.error))


@contextmanager
def _sigterm_as_interrupt() -> Iterator[None]:
    """Turn SIGTERM into KeyboardInterrupt so the lock is released on the way out."""

    def _raise(signum: int, frame: FrameType | None) -> None:
        del signum, frame
        raise KeyboardInterrupt

    try:
        previous = signal.signal(signal.SIGTERM, _raise)
    except ValueError:
        # Not the main thread: leave signal handling alone.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def _print_steps() -> None:
    width = max(len(s.name) for s in STEPS)
    for index, s in enumerate(STEPS, start=1):
        typer.echo(f"{index:2}. {s.name:<{width}}  {s.summary}")


def print_status(console: ConsoleProtocol, status: ReleaseStatus) -> None:
    label = "dry-run release" if status.dry_run else "release"
    if not status.in_progress:
        console.info(f"no {label} in progress")
        return

    state = status.state
    console.header(f"{label.capitalize()} in progress")
    for key, value in state.values().items():
        console.print(f"{key}: {value}", Style.DIM)
    console.print(f"last step: {state.last_step or 'none'}")
    for s in status.steps:
        marker = "[x]" if s.done else "[ ]"
        console.print(f"{marker} {s.name}", Style.SUCCESS if s.done else Style.DEFAULT)
