"""Ports: the narrow capabilities the release core needs from the outside.

Production adapters (`rel.release.adapters`) shell out to git, npm, pnpm and
gh. Tests substitute in-memory fakes, so every pipeline property can be
exercised without a network.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from rel.core.result import Result
from rel.release.errors import ReleaseError


class VersionControl(Protocol):
    def head_sha(self) -> Result[str, ReleaseError]: ...

    def current_branch(self) -> str | None: ...

    def default_branch(self) -> str | None: ...

    def dirty_paths(self) -> Result[list[str], ReleaseError]: ...

    def last_tag(self) -> str | None: ...

    def commit_subjects(self, since: str | None) -> Result[list[str], ReleaseError]: ...

    def last_commit_message(self) -> Result[str, ReleaseError]: ...

    def commit_all(self, message: str) -> Result[None, ReleaseError]: ...

    def has_local_tag(self, tag: str) -> bool: ...

    def create_tag(self, tag: str) -> Result[None, ReleaseError]: ...

    def delete_local_tag(self, tag: str) -> Result[None, ReleaseError]: ...

    def push_with_tags(self) -> Result[None, ReleaseError]: ...

    def remote_has_tag(self, tag: str) -> bool: ...

    def delete_remote_tag(self, tag: str) -> Result[None, ReleaseError]: ...

    def reset_hard(self, sha: str) -> Result[None, ReleaseError]: ...


class PackageRegistry(Protocol):
    def whoami(self) -> Result[str, ReleaseError]: ...

    def publish(self) -> Result[None, ReleaseError]: ...

    def has_version(self, name: str, version: str) -> bool: ...


class ReleaseHost(Protocol):
    def authenticated(self) -> Result[None, ReleaseError]: ...

    def create_release(
        self, tag: str, *, notes_footer: str | None
    ) -> Result[None, ReleaseError]: ...

    def release_exists(self, tag: str) -> bool: ...

    def delete_release(self, tag: str) -> Result[None, ReleaseError]: ...


class Builder(Protocol):
    def build(self) -> Result[None, ReleaseError]: ...

    def output_exists(self) -> bool: ...

    def apply_version(self) -> Result[None, ReleaseError]:
        """Consume pending changesets: bump the manifest, update the changelog."""
        ...


class Operator(Protocol):
    """The human at the terminal."""

    def confirm(self, message: str) -> bool: ...

    def edit(self, path: Path) -> Result[None, ReleaseError]: ...
