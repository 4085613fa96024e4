"""Persisted release state.

The state record is a small line-oriented text file, one `key:value` per
line, keys unique. It stays human readable so an operator can inspect a
stuck release with `cat`:

    original_commit:4f1c2d0e9a...
    last_tag:v1.2.0
    bump_type:minor
    completed_steps:preflight,init,show_commits
    last_step:show_commits

Values may contain colons; lines are split on the first one only.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from rel.platform.files import atomic_write_text, read_text_or_none, remove_file

__all__ = ["VALUE_KEYS", "ReleaseState", "StateStore", "parse_record", "format_record"]

VALUE_KEYS: tuple[str, ...] = (
    "original_commit",
    "last_tag",
    "no_previous_tag",
    "changeset_file",
    "bump_type",
    "version",
    "tag",
)

_COMPLETED_KEY = "completed_steps"
_LAST_STEP_KEY = "last_step"


@dataclass(frozen=True, slots=True)
class ReleaseState:
    """The single persisted aggregate of a release attempt.

    `last_step` is derived from `completed_steps`, so the two can never
    disagree in memory. It is still written to disk for inspection.
    """

    original_commit: str | None = None
    last_tag: str | None = None
    no_previous_tag: bool = False
    changeset_file: str | None = None
    bump_type: str | None = None
    version: str | None = None
    tag: str | None = None
    completed_steps: tuple[str, ...] = field(default_factory=tuple)

    @property
    def last_step(self) -> str | None:
        return self.completed_steps[-1] if self.completed_steps else None

    @property
    def is_empty(self) -> bool:
        return self == ReleaseState()

    def is_done(self, step: str) -> bool:
        return step in self.completed_steps

    def mark_done(self, step: str) -> ReleaseState:
        """Record a completed step.

        A step that is already recorded keeps its position: re-running an
        earlier step must not make rollback forget what came after it.
        """
        if step in self.completed_steps:
            return self
        return replace(self, completed_steps=(*self.completed_steps, step))

    def with_values(self, values: Mapping[str, str]) -> ReleaseState:
        """Return a copy with the given semantic keys overwritten."""
        unknown = set(values) - set(VALUE_KEYS)
        if unknown:
            raise KeyError(f"unknown state keys: {', '.join(sorted(unknown))}")

        changes: dict[str, object] = {}
        for key, value in values.items():
            if key == "no_previous_tag":
                changes[key] = value == "true"
            else:
                changes[key] = value or None
        return replace(self, **changes)

    def values(self) -> dict[str, str]:
        """Semantic values as strings, absent keys omitted."""
        out: dict[str, str] = {}
        for key in VALUE_KEYS:
            value = getattr(self, key)
            if key == "no_previous_tag":
                if value:
                    out[key] = "true"
            elif value is not None:
                out[key] = value
        return out

    def to_record(self) -> dict[str, str]:
        record = self.values()
        if self.completed_steps:
            record[_COMPLETED_KEY] = ",".join(self.completed_steps)
            record[_LAST_STEP_KEY] = self.completed_steps[-1]
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, str]) -> ReleaseState:
        values = {k: v for k, v in record.items() if k in VALUE_KEYS}
        steps = _dedupe(s.strip() for s in record.get(_COMPLETED_KEY, "").split(","))
        last_step = record.get(_LAST_STEP_KEY, "").strip()
        if last_step and last_step not in steps:
            # Older records only carried last_step for the tail.
            steps = (*steps, last_step)
        return cls(completed_steps=steps).with_values(values)


def _dedupe(items: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if not item or item in seen:
            continue
        seen.add(item)
        out.append(item)
    return tuple(out)


def parse_record(text: str) -> dict[str, str]:
    """Parse `key:value` lines. Later duplicates win; malformed lines are skipped."""
    record: dict[str, str] = {}
    for line in text.splitlines():
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        if not key:
            continue
        record.pop(key, None)
        record[key] = value.rstrip("\r")
    return record


def format_record(record: Mapping[str, str]) -> str:
    for key, value in record.items():
        if "\n" in value or "\n" in key or ":" in key:
            raise ValueError(f"cannot store {key!r}: keys and values must be single-line")
    return "".join(f"{key}:{value}\n" for key, value in record.items())


class StateStore:
    """Durable key-value map backing a release attempt.

    A missing record reads as an empty state. Every write rewrites the whole
    record through a temp file and an atomic rename.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        record = self._read()
        record.pop(key, None)
        record[key] = value
        self._write(record)

    def clear(self) -> None:
        remove_file(self.path)

    def load(self) -> ReleaseState:
        return ReleaseState.from_record(self._read())

    def save(self, state: ReleaseState) -> None:
        self._write(state.to_record())

    def _read(self) -> dict[str, str]:
        text = read_text_or_none(self.path)
        if text is None:
            return {}
        return parse_record(text)

    def _write(self, record: Mapping[str, str]) -> None:
        atomic_write_text(self.path, format_record(record))
