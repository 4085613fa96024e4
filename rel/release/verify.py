"""Idempotency layer: skip or re-run a step that is already recorded.

A completed step is never skipped on trust. Its verification predicate is
checked against the world first; a mismatch (manual revert, partial
failure, an earlier dry run) re-runs the step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto

from rel.release.context import StepContext
from rel.release.errors import ReleaseError
from rel.release.state import ReleaseState
from rel.release.step import Step

logger = logging.getLogger(__name__)


class Decision(Enum):
    RUN = auto()
    SKIP = auto()


@dataclass(frozen=True, slots=True)
class Verdict:
    decision: Decision
    reason: str
    mismatch: ReleaseError | None = None

    @property
    def skip(self) -> bool:
        return self.decision == Decision.SKIP


def decide(step: Step, ctx: StepContext, state: ReleaseState) -> Verdict:
    if not state.is_done(step.name):
        return Verdict(Decision.RUN, "not done yet")

    if step.verify(ctx, state):
        logger.info("step %s: verified, skipping", step.name)
        return Verdict(Decision.SKIP, "already done")

    mismatch = ReleaseError(
        kind="verification_mismatch",
        message=f"{step.name} is recorded as done but no longer verifies",
        step=step.name,
        last_step=state.last_step,
    )
    logger.info("step %s: %s, re-running", step.name, mismatch.message)
    return Verdict(Decision.RUN, "recorded but not verified", mismatch=mismatch)
