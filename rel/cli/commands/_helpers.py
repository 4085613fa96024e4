"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import NoReturn

import typer

from rel.core.errors import ErrorCode
from rel.output.console import ConsoleProtocol, Style
from rel.release.errors import ReleaseError, ReleaseErrorKind

_EXIT_CODES: dict[ReleaseErrorKind, ErrorCode] = {
    "preflight_failed": ErrorCode.PREFLIGHT_FAILED,
    "lock_held": ErrorCode.LOCK_HELD,
    "unknown_step": ErrorCode.USER_ERROR,
    "config_invalid": ErrorCode.USER_ERROR,
    "manifest_invalid": ErrorCode.STEP_FAILED,
    "step_failed": ErrorCode.STEP_FAILED,
    "verification_mismatch": ErrorCode.STEP_FAILED,
    "rollback_incomplete": ErrorCode.ROLLBACK_INCOMPLETE,
}


def exit_code_for(error: ReleaseError) -> ErrorCode:
    return _EXIT_CODES.get(error.kind, ErrorCode.STEP_FAILED)


def report_error(console: ConsoleProtocol, error: ReleaseError) -> None:
    """Print `error:` and `hint:` lines, plus where the release stopped."""
    console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)

    if error.step is None or error.kind == "preflight_failed":
        return
    console.print(
        f"failed at step {error.step}; last successful step: {error.last_step or 'none'}",
        Style.WARNING,
    )
    console.print("Run rel to resume, or rel --rollback to undo.", Style.DIM)


def exit_with_code(code: ErrorCode) -> NoReturn:
    raise typer.Exit(code=int(code))


def fail(message: str, *, code: ErrorCode = ErrorCode.USER_ERROR) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(code=int(code))
