"""Bump-type classification from commit subjects.

Conventional-commit markers decide the class of the next release:

- breaking (`feat!: ...`, `fix(api)!: ...`, `BREAKING CHANGE`) -> major
- feature (`feat: ...`, `feat(scope): ...`) -> minor
- anything else -> patch
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from rel.core.config import BumpChoice
from rel.release.semver import ReleaseBump

_BREAKING_RE = re.compile(r"^\w+(\([^)]*\))?!:|BREAKING[ -]CHANGE", re.IGNORECASE)
_FEATURE_RE = re.compile(r"^feat(\([^)]*\))?:", re.IGNORECASE)

# Commits inspected when the repository has no tag yet.
UNTAGGED_HISTORY_LIMIT = 10


def _subject(line: str) -> str:
    # `git log --pretty="- %s"` style lines are accepted too.
    s = line.strip()
    return s[2:].lstrip() if s.startswith("- ") else s


def classify_bump(subjects: Iterable[str]) -> ReleaseBump:
    """Classify commit subjects into major, minor or patch."""
    cleaned = [_subject(s) for s in subjects]
    if any(_BREAKING_RE.search(s) for s in cleaned):
        return "major"
    if any(_FEATURE_RE.match(s) for s in cleaned):
        return "minor"
    return "patch"


@dataclass(frozen=True, slots=True)
class BumpDecision:
    """Chosen bump plus what the commits suggested.

    `overridden` is True when the operator's explicit choice differs from
    the detected class (the explicit choice always wins).
    """

    bump: ReleaseBump
    detected: ReleaseBump
    automatic: bool

    @property
    def overridden(self) -> bool:
        return not self.automatic and self.bump != self.detected


def decide_bump(requested: BumpChoice, subjects: Iterable[str]) -> BumpDecision:
    detected = classify_bump(subjects)
    if requested == "auto":
        return BumpDecision(bump=detected, detected=detected, automatic=True)
    return BumpDecision(bump=requested, detected=detected, automatic=False)
