"""Step descriptor and step outcomes."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rel.core.result import Result
from rel.release.errors import ReleaseError
from rel.release.state import ReleaseState

if TYPE_CHECKING:
    from rel.release.context import StepContext


def _no_values() -> Mapping[str, str]:
    return {}


@dataclass(frozen=True, slots=True)
class StepDone:
    """Mark the step completed and merge `values` into the state."""

    values: Mapping[str, str] = field(default_factory=_no_values)


@dataclass(frozen=True, slots=True)
class StepCleared:
    """The step ended the release: the state record is erased."""


StepOutcome = StepDone | StepCleared
StepAction = Callable[["StepContext", ReleaseState], Result[StepOutcome, ReleaseError]]
StepVerify = Callable[["StepContext", ReleaseState], bool]


@dataclass(frozen=True, slots=True)
class Step:
    """One named unit of the release pipeline.

    Attributes:
        name: Unique name, also the key in the state record
        summary: One-line description for --list-steps
        action: Does the work; returns the values to record
        verify: True when the external world still matches a completed run
        dry_run: Projection used under --dry-run. None means the action only
            reads and runs unchanged in a dry run.
    """

    name: str
    summary: str
    action: StepAction
    verify: StepVerify
    dry_run: StepAction | None = None


def never_verified(ctx: "StepContext", state: ReleaseState) -> bool:
    del ctx, state
    return False
