"""Compensating rollback, dispatched on the last completed step.

Compensations run newest effect first and are best-effort: a failing one is
reported and the rest still run. The state record is cleared afterwards, so
a rollback is never resumed. Steps after `last_step` are never compensated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from rel.core.result import Err, Ok, Result
from rel.output.console import Style
from rel.platform.files import remove_file
from rel.release.context import StepContext
from rel.release.errors import ReleaseError, step_failed
from rel.release.state import ReleaseState, StateStore

logger = logging.getLogger(__name__)

__all__ = [
    "COMPENSATION_CHAINS",
    "Compensation",
    "RollbackReport",
    "plan_rollback",
    "preview_rollback",
    "rollback",
]

CompensationApply = Callable[[StepContext, ReleaseState], Result[str, ReleaseError]]


@dataclass(frozen=True, slots=True)
class Compensation:
    """Undo action for the effect of one step.

    Attributes:
        name: Identifier shown in reports
        undoes: Step whose effect this compensation reverts
        describe: Plan line for the operator
        apply: Performs the compensation; Ok carries what was done
    """

    name: str
    undoes: str
    describe: Callable[[ReleaseState], str]
    apply: CompensationApply


def _delete_release(ctx: StepContext, state: ReleaseState) -> Result[str, ReleaseError]:
    if state.tag is None:
        return Ok("no tag recorded, no release to delete")
    if not ctx.host.release_exists(state.tag):
        return Ok(f"no GitHub release {state.tag}")
    deleted = ctx.host.delete_release(state.tag)
    if isinstance(deleted, Err):
        return deleted
    return Ok(f"deleted GitHub release {state.tag}")


def _delete_remote_tag(ctx: StepContext, state: ReleaseState) -> Result[str, ReleaseError]:
    if state.tag is None:
        return Ok("no tag recorded, no remote tag to delete")
    if not ctx.vcs.remote_has_tag(state.tag):
        return Ok(f"remote tag {state.tag} already absent")
    deleted = ctx.vcs.delete_remote_tag(state.tag)
    if isinstance(deleted, Err):
        return deleted
    return Ok(f"deleted remote tag {state.tag}")


def _unpublish_instruction(state: ReleaseState, name: str) -> str:
    return f"npm unpublish {name}@{state.version or '<version>'}"


def _manual_unpublish(ctx: StepContext, state: ReleaseState) -> Result[str, ReleaseError]:
    manifest = ctx.manifest()
    name = manifest.value.name if isinstance(manifest, Ok) else "<package>"
    command = _unpublish_instruction(state, name)
    ctx.console.warning(f"the registry cannot be rolled back automatically. Run: {command}")
    return Ok(f"manual step required: {command}")


def _reset(ctx: StepContext, state: ReleaseState) -> Result[str, ReleaseError]:
    if state.original_commit is None:
        return Err(step_failed("no original commit recorded, cannot reset"))
    reset = ctx.vcs.reset_hard(state.original_commit)
    if isinstance(reset, Err):
        return reset

    done = f"reset to {state.original_commit[:8]}"
    if state.tag is not None and ctx.vcs.has_local_tag(state.tag):
        dropped = ctx.vcs.delete_local_tag(state.tag)
        if isinstance(dropped, Err):
            return Err(
                step_failed(
                    f"{done}, but deleting local tag {state.tag} failed",
                    hint=dropped.error.hint,
                )
            )
        done += f", deleted local tag {state.tag}"
    return Ok(done)


def _delete_changeset(ctx: StepContext, state: ReleaseState) -> Result[str, ReleaseError]:
    if state.changeset_file is None:
        return Ok("no changeset recorded")
    try:
        removed = remove_file(ctx.path(state.changeset_file))
    except OSError as e:
        return Err(step_failed(f"cannot delete {state.changeset_file}", hint=str(e)))
    if not removed:
        return Ok(f"{state.changeset_file} already absent")
    return Ok(f"deleted {state.changeset_file}")


DELETE_RELEASE = Compensation(
    name="delete_release",
    undoes="gh_release",
    describe=lambda s: f"delete GitHub release {s.tag or '(no tag)'}",
    apply=_delete_release,
)
DELETE_REMOTE_TAG = Compensation(
    name="delete_remote_tag",
    undoes="git_push",
    describe=lambda s: f"delete remote tag {s.tag or '(no tag)'}",
    apply=_delete_remote_tag,
)
MANUAL_UNPUBLISH = Compensation(
    name="manual_unpublish",
    undoes="npm_publish",
    describe=lambda s: f"print the manual unpublish command for {s.version or '(no version)'}",
    apply=_manual_unpublish,
)
RESET = Compensation(
    name="reset",
    undoes="version",
    describe=lambda s: (
        f"hard reset to {s.original_commit[:8] if s.original_commit else '(unknown commit)'}"
        + (f" and delete local tag {s.tag}" if s.tag else "")
    ),
    apply=_reset,
)
DELETE_CHANGESET = Compensation(
    name="delete_changeset",
    undoes="create_changeset",
    describe=lambda s: f"delete changeset {s.changeset_file or '(none recorded)'}",
    apply=_delete_changeset,
)

COMPENSATION_CHAINS: dict[str, tuple[Compensation, ...]] = {
    "cleanup": (DELETE_RELEASE, DELETE_REMOTE_TAG, RESET),
    "gh_release": (DELETE_RELEASE, DELETE_REMOTE_TAG, RESET),
    "git_push": (DELETE_REMOTE_TAG, RESET),
    "npm_publish": (MANUAL_UNPUBLISH, RESET),
    "git_commit": (RESET,),
    "version": (RESET,),
    "build": (DELETE_CHANGESET,),
    "edit_changeset": (DELETE_CHANGESET,),
    "create_changeset": (DELETE_CHANGESET,),
}


def plan_rollback(last_step: str | None) -> tuple[Compensation, ...]:
    """Compensations for a release that got as far as `last_step`."""
    if last_step is None:
        return ()
    return COMPENSATION_CHAINS.get(last_step, ())


@dataclass(frozen=True, slots=True)
class RollbackReport:
    last_step: str | None
    applied: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.failed

    def as_error(self) -> ReleaseError | None:
        if self.complete:
            return None
        return ReleaseError(
            kind="rollback_incomplete",
            message=f"{len(self.failed)} compensation(s) failed: {', '.join(self.failed)}",
            hint="Undo the remaining effects by hand; the release state was cleared.",
            last_step=self.last_step,
        )


def preview_rollback(ctx: StepContext, state: ReleaseState) -> RollbackReport:
    """Print what a rollback would do. Nothing is touched, the state is kept."""
    chain = plan_rollback(state.last_step)
    if not chain:
        ctx.console.info("nothing to roll back")
        return RollbackReport(last_step=state.last_step)
    ctx.console.print(f"Rollback plan (last step: {state.last_step}):", Style.BOLD)
    for compensation in chain:
        ctx.console.dry_run(f"would {compensation.describe(state)}")
        logger.info("[dry-run] rollback would %s", compensation.describe(state))
    return RollbackReport(last_step=state.last_step)


def rollback(ctx: StepContext, store: StateStore) -> RollbackReport:
    state = store.load()
    chain = plan_rollback(state.last_step)
    logger.info(
        "rollback from %s: %s",
        state.last_step or "nothing",
        ", ".join(c.name for c in chain) or "no compensations",
    )

    if not chain:
        ctx.console.info("nothing to roll back")

    applied: list[str] = []
    failed: list[str] = []
    for compensation in chain:
        ctx.console.print(f"rollback: {compensation.describe(state)}", Style.WARNING)
        result = compensation.apply(ctx, state)
        if isinstance(result, Err):
            failed.append(compensation.name)
            ctx.console.error(f"{compensation.name} failed: {result.error.message}")
            if result.error.hint:
                ctx.console.print(f"hint: {result.error.hint}", Style.DIM)
            logger.error("compensation %s failed: %s", compensation.name, result.error.pretty())
            continue
        applied.append(compensation.name)
        ctx.console.print(result.value, Style.DIM)
        logger.info("compensation %s: %s", compensation.name, result.value)

    store.clear()
    report = RollbackReport(last_step=state.last_step, applied=tuple(applied), failed=tuple(failed))
    if report.complete:
        ctx.console.success("rollback complete")
    else:
        ctx.console.warning(f"rollback finished with {len(failed)} failed compensation(s)")
    return report
