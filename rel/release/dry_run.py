"""Dry-run overlay.

Under --dry-run every mutating step runs its projection instead of its
action: the projection announces what would happen, touches nothing
external, and records clearly marked placeholder values so later steps can
still run end to end. Steps without a projection only read, and run as-is.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from rel.core.result import Ok, Result
from rel.release.context import StepContext
from rel.release.errors import ReleaseError
from rel.release.state import ReleaseState
from rel.release.step import Step, StepAction, StepDone, StepOutcome

logger = logging.getLogger(__name__)

PLACEHOLDER_SUFFIX = "-dry-run"


def placeholder(value: str) -> str:
    return value if is_placeholder(value) else f"{value}{PLACEHOLDER_SUFFIX}"


def is_placeholder(value: str | None) -> bool:
    return value is not None and value.endswith(PLACEHOLDER_SUFFIX)


def announce(ctx: StepContext, message: str) -> None:
    ctx.console.dry_run(message)
    logger.info("[dry-run] %s", message)


def select_action(step: Step, ctx: StepContext) -> StepAction:
    if ctx.config.dry_run and step.dry_run is not None:
        return step.dry_run
    return step.action


def simulate(
    describe: Callable[[StepContext, ReleaseState], str],
    values: Callable[[StepContext, ReleaseState], Mapping[str, str]] | None = None,
) -> StepAction:
    """Build a projection that announces `describe(...)` and records `values`."""

    def projection(ctx: StepContext, state: ReleaseState) -> Result[StepOutcome, ReleaseError]:
        announce(ctx, describe(ctx, state))
        return Ok(StepDone(values=values(ctx, state) if values is not None else {}))

    return projection
