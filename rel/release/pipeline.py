"""Sequential release pipeline: run one step, run from a step, resume."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

from rel.core.result import Err, Ok, Result
from rel.output.console import Style
from rel.release.context import StepContext
from rel.release.dry_run import select_action
from rel.release.errors import ReleaseError
from rel.release.state import ReleaseState, StateStore
from rel.release.step import Step, StepCleared, StepDone
from rel.release.steps import STEPS
from rel.release.verify import decide

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StepStatus:
    name: str
    done: bool


@dataclass(frozen=True, slots=True)
class ReleaseStatus:
    in_progress: bool
    state: ReleaseState
    steps: tuple[StepStatus, ...]
    dry_run: bool = False


class Pipeline:
    """Runs the registered steps against one state record.

    A failing step stops the run at once. The state is left exactly as of the
    last successful step, which the returned error names.
    """

    def __init__(
        self,
        *,
        ctx: StepContext,
        store: StateStore,
        steps: Sequence[Step] = STEPS,
    ) -> None:
        self.ctx = ctx
        self.store = store
        self.steps = tuple(steps)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.steps)

    def find(self, name: str) -> Result[Step, ReleaseError]:
        for step in self.steps:
            if step.name == name:
                return Ok(step)
        return Err(
            ReleaseError(
                kind="unknown_step",
                message=f"unknown step: {name}",
                hint="Available steps: " + ", ".join(self.names),
            )
        )

    def run_step(self, name: str) -> Result[None, ReleaseError]:
        """Run exactly one step, without checking whether it is already done."""
        step = self.find(name)
        if isinstance(step, Err):
            return step
        return self._execute(step.value)

    def run_from(self, name: str) -> Result[None, ReleaseError]:
        """Run `name` and every later step; verified completions are skipped."""
        start = self.find(name)
        if isinstance(start, Err):
            return start

        index = self.names.index(name)
        for step in self.steps[index:]:
            verdict = decide(step, self.ctx, self.store.load())
            if verdict.skip:
                self.ctx.console.print(f"skip {step.name} ({verdict.reason})", Style.DIM)
                continue
            if verdict.mismatch is not None:
                self.ctx.console.warning(verdict.mismatch.message + "; running it again")

            executed = self._execute(step)
            if isinstance(executed, Err):
                return executed
        return Ok(None)

    def resume(self) -> Result[None, ReleaseError]:
        """Continue after the last completed step, or start fresh."""
        first = self.steps[0].name
        if not self.store.exists():
            self.ctx.console.info("no release in progress, starting fresh")
            return self.run_from(first)

        last_step = self.store.load().last_step
        if last_step is None:
            return self.run_from(first)
        if last_step not in self.names:
            return Err(
                ReleaseError(
                    kind="unknown_step",
                    message=f"state record names an unknown step: {last_step}",
                    hint=f"Inspect or delete {self.store.path}",
                )
            )

        next_index = self.names.index(last_step) + 1
        if next_index >= len(self.steps) and self.ctx.config.dry_run:
            # A finished dry run keeps its record; the next one simulates afresh.
            self.store.clear()
            self.ctx.console.info("previous dry run complete, starting a new one")
            logger.info("resume: previous dry run complete, starting over")
            return self.run_from(first)
        if next_index >= len(self.steps):
            self.store.clear()
            self.ctx.console.success("release already complete")
            logger.info("resume: release already complete, state cleared")
            return Ok(None)

        next_step = self.steps[next_index].name
        self.ctx.console.info(f"resuming release from {next_step}")
        logger.info("resume from %s (last step %s)", next_step, last_step)
        return self.run_from(next_step)

    def status(self) -> ReleaseStatus:
        return release_status(self.store, self.steps, dry_run=self.ctx.config.dry_run)

    def _execute(self, step: Step) -> Result[None, ReleaseError]:
        state = self.store.load()
        action = select_action(step, self.ctx)

        self.ctx.console.header(step.name)
        logger.info("step %s: start%s", step.name, " (dry run)" if self.ctx.config.dry_run else "")

        outcome = action(self.ctx, state)
        if isinstance(outcome, Err):
            error = replace(outcome.error, step=step.name, last_step=state.last_step)
            logger.error(
                "step %s failed: %s (last successful step: %s)",
                step.name,
                error.pretty(),
                state.last_step or "none",
            )
            return Err(error)

        match outcome.value:
            case StepCleared():
                self.store.clear()
                logger.info("step %s: done, state cleared", step.name)
            case StepDone(values=values):
                self.store.save(state.with_values(values).mark_done(step.name))
                logger.info("step %s: done", step.name)
        return Ok(None)


def release_status(
    store: StateStore,
    steps: Sequence[Step] = STEPS,
    *,
    dry_run: bool = False,
) -> ReleaseStatus:
    """Read-only view of a state record; takes no lock."""
    state = store.load()
    return ReleaseStatus(
        in_progress=store.exists(),
        state=state,
        steps=tuple(StepStatus(s.name, state.is_done(s.name)) for s in steps),
        dry_run=dry_run,
    )
