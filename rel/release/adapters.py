"""Production adapters for the release ports.

Each adapter shells out through `rel.platform.process` and maps process
failures to `ReleaseError(kind="step_failed")` with stderr as the hint.
No retries: a failure is surfaced to the operator, who resumes.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import typer

from rel.core.result import Err, Ok, Result
from rel.git.repository import GitError, Repository
from rel.platform.process import ProcessError, run, run_silent
from rel.release.bump import UNTAGGED_HISTORY_LIMIT
from rel.release.errors import ReleaseError, step_failed

# Registry / release host API calls
NETWORK_TIMEOUT_SECONDS = 60.0

T = TypeVar("T")

__all__ = [
    "GhReleaseHost",
    "GitVersionControl",
    "NpmRegistry",
    "PnpmBuilder",
    "TerminalOperator",
]


def _git_err(e: GitError) -> Err[ReleaseError]:
    return Err(step_failed(f"git {e.command} failed", hint=e.message))


def _proc_err(message: str, e: ProcessError) -> Err[ReleaseError]:
    return Err(step_failed(message, hint=e.detail))


def _map_git(result: Result[T, GitError]) -> Result[T, ReleaseError]:
    if isinstance(result, Err):
        return _git_err(result.error)
    return result


@dataclass(frozen=True, slots=True)
class GitVersionControl:
    repo: Repository

    def head_sha(self) -> Result[str, ReleaseError]:
        return _map_git(self.repo.head_sha())

    def current_branch(self) -> str | None:
        return self.repo.current_branch()

    def default_branch(self) -> str | None:
        return self.repo.default_branch()

    def dirty_paths(self) -> Result[list[str], ReleaseError]:
        result = self.repo.status_entries()
        if isinstance(result, Err):
            return _git_err(result.error)
        return Ok([f"{e.pretty_xy()} {e.path}" for e in result.value])

    def last_tag(self) -> str | None:
        return self.repo.last_tag()

    def commit_subjects(self, since: str | None) -> Result[list[str], ReleaseError]:
        return _map_git(self.repo.commit_subjects(since, limit=UNTAGGED_HISTORY_LIMIT))

    def last_commit_message(self) -> Result[str, ReleaseError]:
        return _map_git(self.repo.last_commit_message())

    def commit_all(self, message: str) -> Result[None, ReleaseError]:
        added = self.repo.add_all()
        if isinstance(added, Err):
            return _git_err(added.error)
        committed = self.repo.commit(message)
        if isinstance(committed, Err):
            e = committed.error
            return Err(
                step_failed(
                    "git commit failed",
                    hint=e.message or "Configure git user.name/user.email, then retry.",
                )
            )
        return Ok(None)

    def has_local_tag(self, tag: str) -> bool:
        return self.repo.has_local_tag(tag)

    def create_tag(self, tag: str) -> Result[None, ReleaseError]:
        return _map_git(self.repo.create_tag(tag, tag))

    def delete_local_tag(self, tag: str) -> Result[None, ReleaseError]:
        return _map_git(self.repo.delete_local_tag(tag))

    def push_with_tags(self) -> Result[None, ReleaseError]:
        return _map_git(self.repo.push_follow_tags())

    def remote_has_tag(self, tag: str) -> bool:
        result = self.repo.remote_has_tag(tag)
        return isinstance(result, Ok) and result.value

    def delete_remote_tag(self, tag: str) -> Result[None, ReleaseError]:
        return _map_git(self.repo.delete_remote_tag(tag))

    def reset_hard(self, sha: str) -> Result[None, ReleaseError]:
        return _map_git(self.repo.reset_hard(sha))


@dataclass(frozen=True, slots=True)
class NpmRegistry:
    """npm registry, published through changesets (which also tags)."""

    root: Path

    def whoami(self) -> Result[str, ReleaseError]:
        result = run(["npm", "whoami"], cwd=self.root, timeout=NETWORK_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="step_failed",
                    message="npm auth required",
                    hint="Run: npm login",
                )
            )
        return Ok(result.value.strip())

    def publish(self) -> Result[None, ReleaseError]:
        # Attached to the terminal: npm may prompt for a one-time password.
        result = run_silent(["pnpm", "changeset", "publish"], cwd=self.root)
        if isinstance(result, Err):
            return _proc_err("publish failed", result.error)
        return Ok(None)

    def has_version(self, name: str, version: str) -> bool:
        result = run(
            ["npm", "view", f"{name}@{version}", "version"],
            cwd=self.root,
            timeout=NETWORK_TIMEOUT_SECONDS,
        )
        return isinstance(result, Ok) and version in result.value


@dataclass(frozen=True, slots=True)
class GhReleaseHost:
    """GitHub releases through the gh CLI."""

    root: Path
    repo: str | None = None

    def _gh(self, *args: str) -> list[str]:
        cmd = ["gh", *args]
        if self.repo:
            cmd += ["--repo", self.repo]
        return cmd

    def authenticated(self) -> Result[None, ReleaseError]:
        result = run(["gh", "auth", "status"], cwd=self.root, timeout=NETWORK_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="step_failed",
                    message="gh auth required",
                    hint="Run: gh auth login",
                )
            )
        return Ok(None)

    def create_release(self, tag: str, *, notes_footer: str | None) -> Result[None, ReleaseError]:
        created = run(
            self._gh("release", "create", tag, "--title", tag, "--generate-notes"),
            cwd=self.root,
            timeout=NETWORK_TIMEOUT_SECONDS,
        )
        if isinstance(created, Err):
            return _proc_err(f"gh release create {tag} failed", created.error)

        if notes_footer is None:
            return Ok(None)

        body = run(
            self._gh("release", "view", tag, "--json", "body", "-q", ".body"),
            cwd=self.root,
            timeout=NETWORK_TIMEOUT_SECONDS,
        )
        if isinstance(body, Err):
            return _proc_err(f"gh release view {tag} failed", body.error)

        notes = f"{body.value.rstrip()}\n\n{notes_footer}"
        edited = run(
            self._gh("release", "edit", tag, "--notes", notes),
            cwd=self.root,
            timeout=NETWORK_TIMEOUT_SECONDS,
        )
        if isinstance(edited, Err):
            return _proc_err(f"gh release edit {tag} failed", edited.error)
        return Ok(None)

    def release_exists(self, tag: str) -> bool:
        result = run(
            self._gh("release", "view", tag),
            cwd=self.root,
            timeout=NETWORK_TIMEOUT_SECONDS,
        )
        return isinstance(result, Ok)

    def delete_release(self, tag: str) -> Result[None, ReleaseError]:
        result = run(
            self._gh("release", "delete", tag, "--yes"),
            cwd=self.root,
            timeout=NETWORK_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return _proc_err(f"gh release delete {tag} failed", result.error)
        return Ok(None)


@dataclass(frozen=True, slots=True)
class PnpmBuilder:
    root: Path
    output_dir: Path

    def build(self) -> Result[None, ReleaseError]:
        result = run_silent(["pnpm", "build"], cwd=self.root)
        if isinstance(result, Err):
            return _proc_err("build failed", result.error)
        return Ok(None)

    def output_exists(self) -> bool:
        return self.output_dir.is_dir()

    def apply_version(self) -> Result[None, ReleaseError]:
        result = run_silent(["pnpm", "changeset", "version"], cwd=self.root)
        if isinstance(result, Err):
            return _proc_err("changeset version failed", result.error)
        return Ok(None)


@dataclass(frozen=True, slots=True)
class TerminalOperator:
    root: Path

    def confirm(self, message: str) -> bool:
        return typer.confirm(message, default=False)

    def edit(self, path: Path) -> Result[None, ReleaseError]:
        editor = os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vi"
        result = run_silent([*shlex.split(editor), str(path)], cwd=self.root)
        if isinstance(result, Err):
            return _proc_err(f"editor exited with an error: {editor}", result.error)
        return Ok(None)
