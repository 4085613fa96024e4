from __future__ import annotations

from pathlib import Path

from rel.release.changeset import render_changeset, write_changeset


def test_render_lists_commits_under_front_matter() -> None:
    text = render_changeset(
        package="demo-pkg",
        bump="minor",
        subjects=["feat: add export", "fix: typo"],
    )

    assert text == '---\n"demo-pkg": minor\n---\n\n- feat: add export\n- fix: typo\n'


def test_render_without_commits() -> None:
    text = render_changeset(package="demo-pkg", bump="patch", subjects=[])
    assert text.endswith("- maintenance release\n")


def test_write_uses_random_hex_name(tmp_path: Path) -> None:
    changeset_dir = tmp_path / ".changeset"

    first = write_changeset(
        changeset_dir=changeset_dir, package="demo-pkg", bump="patch", subjects=["fix: a"]
    )
    second = write_changeset(
        changeset_dir=changeset_dir, package="demo-pkg", bump="patch", subjects=["fix: b"]
    )

    assert first != second
    assert first.parent == changeset_dir
    assert len(first.stem) == 8
    int(first.stem, 16)
    assert first.read_text(encoding="utf-8").startswith('---\n"demo-pkg": patch\n---\n')
