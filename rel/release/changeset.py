"""Changeset files.

A changeset is a markdown file under `.changeset/` with front matter naming
the package and its bump, followed by the release notes:

    ---
    "my-package": minor
    ---

    - feat: add export
"""

from __future__ import annotations

import secrets
from collections.abc import Sequence
from pathlib import Path

from rel.platform.files import atomic_write_text


def render_changeset(*, package: str, bump: str, subjects: Sequence[str]) -> str:
    notes = "\n".join(f"- {s}" for s in subjects) or "- maintenance release"
    return f'---\n"{package}": {bump}\n---\n\n{notes}\n'


def new_changeset_path(changeset_dir: Path) -> Path:
    """Fresh random file name, the way `changeset add` names them."""
    while True:
        path = changeset_dir / f"{secrets.token_hex(4)}.md"
        if not path.exists():
            return path


def write_changeset(
    *, changeset_dir: Path, package: str, bump: str, subjects: Sequence[str]
) -> Path:
    path = new_changeset_path(changeset_dir)
    atomic_write_text(path, render_changeset(package=package, bump=bump, subjects=subjects))
    return path
