"""Error types for the release orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "preflight_failed",
    "lock_held",
    "unknown_step",
    "step_failed",
    "verification_mismatch",
    "config_invalid",
    "manifest_invalid",
    "rollback_incomplete",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error payload.

    `step` names the step that failed and `last_step` the last one that
    succeeded, so the operator knows where a resume or rollback starts.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
    step: str | None = None
    last_step: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


def step_failed(message: str, hint: str | None = None) -> ReleaseError:
    """Shorthand used by adapters and step actions."""
    return ReleaseError(kind="step_failed", message=message, hint=hint)
