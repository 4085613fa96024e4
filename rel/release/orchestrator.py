"""Orchestrator driver: wires ports, lock, state and pipeline for one run.

The CLI builds a `Command` from the flags and calls `execute`. Everything
that mutates state happens inside the lock; a bad step name is rejected
before the lock or any record is touched.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from rel.core.config import BumpChoice, RunConfig, build_run_config, load_config_record
from rel.core.result import Err, Ok, Result
from rel.git.repository import Repository
from rel.output.console import ConsoleProtocol
from rel.release.adapters import (
    GhReleaseHost,
    GitVersionControl,
    NpmRegistry,
    PnpmBuilder,
    TerminalOperator,
)
from rel.release.context import StepContext
from rel.release.errors import ReleaseError
from rel.release.lock import ReleaseLock
from rel.release.pipeline import Pipeline, ReleaseStatus, release_status
from rel.release.rollback import preview_rollback, rollback
from rel.release.state import StateStore
from rel.release.step import Step
from rel.release.steps import STEPS

logger = logging.getLogger(__name__)

__all__ = [
    "Command",
    "CommandMode",
    "build_step_context",
    "execute",
    "load_run_config",
    "read_status",
    "records_dir_for",
]

CommandMode = Literal["resume", "step", "from", "rollback"]


@dataclass(frozen=True, slots=True)
class Command:
    """What the operator asked for.

    `step` is required for the "step" and "from" modes and ignored otherwise.
    """

    mode: CommandMode = "resume"
    step: str | None = None


def records_dir_for(root: Path) -> Path | None:
    """Records directory for a checkout whose `.git` is not a directory.

    In a linked worktree or a submodule `.git` is a pointer file; the records
    go into the real git directory so they never show up as untracked files.
    None keeps the default location.
    """
    if (root / ".git").is_dir():
        return None
    git_dir = Repository(root).git_dir()
    if isinstance(git_dir, Err):
        logger.warning("no git directory for %s: %s", root, git_dir.error.message)
        return None
    return git_dir.value / "rel"


def load_run_config(
    *,
    root: Path,
    bump: BumpChoice | None,
    dry_run: bool,
    assume_yes: bool,
    edit: bool | None,
) -> Result[RunConfig, ReleaseError]:
    """Merge release.toml and the CLI flags into the configuration for one run."""
    record = load_config_record(root)
    if isinstance(record, Err):
        path = record.error.path
        return Err(
            ReleaseError(
                kind="config_invalid",
                message=record.error.message,
                hint=f"Fix or remove {path}" if path is not None else None,
            )
        )
    return Ok(
        build_run_config(
            root=root,
            record=record.value,
            bump=bump,
            dry_run=dry_run,
            assume_yes=assume_yes,
            edit=edit,
            state_dir=records_dir_for(root),
        )
    )


def build_step_context(config: RunConfig, console: ConsoleProtocol) -> StepContext:
    """Production wiring: git, npm, gh and pnpm on the real checkout."""
    return StepContext(
        config=config,
        vcs=GitVersionControl(Repository(config.root)),
        registry=NpmRegistry(config.root),
        host=GhReleaseHost(config.root),
        builder=PnpmBuilder(config.root, config.dist_dir),
        operator=TerminalOperator(config.root),
        console=console,
    )


def read_status(config: RunConfig, steps: Sequence[Step] = STEPS) -> ReleaseStatus:
    return release_status(StateStore(config.state_path), steps, dry_run=config.dry_run)


def execute(
    command: Command,
    *,
    ctx: StepContext,
    lock: ReleaseLock | None = None,
    steps: Sequence[Step] = STEPS,
) -> Result[None, ReleaseError]:
    config = ctx.config
    pipeline = Pipeline(ctx=ctx, store=StateStore(config.state_path), steps=steps)

    if command.mode in ("step", "from"):
        if command.step is None:
            return Err(
                ReleaseError(kind="unknown_step", message=f"--{command.mode} needs a step name")
            )
        found = pipeline.find(command.step)
        if isinstance(found, Err):
            return found

    if command.mode == "rollback" and config.dry_run:
        # Preview only reads the real record.
        preview_rollback(ctx, StateStore(config.real_state_path).load())
        return Ok(None)

    if lock is None:
        lock = ReleaseLock(config.lock_path, console=ctx.console)

    with lock.hold() as acquired:
        if isinstance(acquired, Err):
            return acquired
        logger.info(
            "run: mode=%s step=%s dry_run=%s bump=%s",
            command.mode,
            command.step or "-",
            config.dry_run,
            config.bump,
        )
        return _dispatch(command, ctx=ctx, pipeline=pipeline)


def _dispatch(
    command: Command, *, ctx: StepContext, pipeline: Pipeline
) -> Result[None, ReleaseError]:
    match command.mode:
        case "resume":
            return pipeline.resume()
        case "step":
            assert command.step is not None
            return pipeline.run_step(command.step)
        case "from":
            assert command.step is not None
            return pipeline.run_from(command.step)
        case "rollback":
            # Rollback always undoes the real release, never a dry run's record.
            report = rollback(ctx, StateStore(ctx.config.real_state_path))
            error = report.as_error()
            return Err(error) if error is not None else Ok(None)
