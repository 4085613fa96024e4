"""Git repository abstraction.

This module provides the Repository class for the git operations a release
needs: reading HEAD, tags and history, committing the version bump, tagging
and pushing, and the destructive operations used by rollback.
All operations return Result types.

Usage:
    repo = Repository(Path("/path/to/checkout"))

    match repo.head_sha():
        case Ok(sha):
            print(f"HEAD is {sha}")
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rel.core.result import Err, Ok, Result
from rel.platform.process import ProcessError
from rel.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "ls-remote"})

__all__ = [
    "GitError",
    "Repository",
    "StatusEntry",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single entry in `git status --porcelain`.

    Attributes:
        xy: Two-character status code (e.g., "M ", " M", "??")
        path: File path
    """

    xy: str
    path: str

    @property
    def is_untracked(self) -> bool:
        return self.xy == "??"

    def pretty_xy(self) -> str:
        """Format XY with dots for spaces (". M" instead of " M")."""
        return self.xy.replace(" ", ".")


class Repository:
    """Git operations on a single checkout.

    Attributes:
        path: Path to the repository root
        remote: Remote that receives the release commit and tag
    """

    def __init__(self, path: Path, *, remote: str = "origin") -> None:
        self.path = path
        self.remote = remote

    def exists(self) -> bool:
        """Check if this is a valid git repository."""
        return (self.path / ".git").exists()

    # -- reads ---------------------------------------------------------------

    def head_sha(self) -> Result[str, GitError]:
        """Full sha of HEAD."""
        return self._text(["rev-parse", "HEAD"], "rev-parse HEAD")

    def git_dir(self) -> Result[Path, GitError]:
        """Absolute git directory. For a linked worktree or a submodule this
        lies outside the working tree, where `.git` is only a pointer file.
        """
        result = self._text(["rev-parse", "--absolute-git-dir"], "rev-parse --absolute-git-dir")
        if isinstance(result, Err):
            return result
        return Ok(Path(result.value))

    def current_branch(self) -> str | None:
        """Current branch name, or None if detached HEAD or error."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def default_branch(self) -> str | None:
        """Default branch advertised by the remote (origin/HEAD), if known."""
        result = self._run(["symbolic-ref", "--short", f"refs/remotes/{self.remote}/HEAD"])
        if isinstance(result, Err):
            return None
        ref = result.value.strip()
        prefix = f"{self.remote}/"
        return ref[len(prefix) :] if ref.startswith(prefix) else (ref or None)

    def status_entries(self) -> Result[tuple[StatusEntry, ...], GitError]:
        """Uncommitted changes (staged, unstaged and untracked)."""
        result = self._run(["status", "--porcelain=v1"])
        match result:
            case Err(e):
                return Err(self._error("status", e))
            case Ok(stdout):
                entries = [self._parse_entry(ln) for ln in stdout.splitlines()]
                return Ok(tuple(e for e in entries if e is not None))

    def last_tag(self) -> str | None:
        """Most recent tag reachable from HEAD, or None without tags."""
        result = self._run(["describe", "--tags", "--abbrev=0"])
        if isinstance(result, Err):
            return None
        return result.value.strip() or None

    def commit_subjects(self, since: str | None, *, limit: int) -> Result[list[str], GitError]:
        """Commit subjects since a tag, or the last `limit` commits without one."""
        args = ["log", "--pretty=format:%s"]
        if since:
            args.append(f"{since}..HEAD")
        else:
            args.append(f"-{limit}")
        result = self._run(args)
        match result:
            case Err(e):
                return Err(self._error("log", e))
            case Ok(stdout):
                return Ok([ln for ln in stdout.splitlines() if ln.strip()])

    def last_commit_message(self) -> Result[str, GitError]:
        return self._text(["log", "-1", "--pretty=%B"], "log -1")

    def has_local_tag(self, tag: str) -> bool:
        result = self._run(["rev-parse", "-q", "--verify", f"refs/tags/{tag}"])
        return isinstance(result, Ok)

    def remote_has_tag(self, tag: str) -> Result[bool, GitError]:
        result = self._run(["ls-remote", "--tags", self.remote, f"refs/tags/{tag}"])
        match result:
            case Err(e):
                return Err(self._error("ls-remote", e))
            case Ok(stdout):
                return Ok(f"refs/tags/{tag}" in stdout)

    # -- writes --------------------------------------------------------------

    def add_all(self) -> Result[None, GitError]:
        return self._mutate(["add", "-A"], "add -A")

    def commit(self, message: str) -> Result[None, GitError]:
        return self._mutate(["commit", "-m", message], "commit")

    def create_tag(self, tag: str, message: str) -> Result[None, GitError]:
        return self._mutate(["tag", "-a", tag, "-m", message], f"tag {tag}")

    def delete_local_tag(self, tag: str) -> Result[None, GitError]:
        return self._mutate(["tag", "-d", tag], f"tag -d {tag}")

    def push_follow_tags(self) -> Result[None, GitError]:
        return self._mutate(["push", "--follow-tags", self.remote, "HEAD"], "push --follow-tags")

    def delete_remote_tag(self, tag: str) -> Result[None, GitError]:
        return self._mutate(["push", self.remote, f":refs/tags/{tag}"], f"push :refs/tags/{tag}")

    def reset_hard(self, sha: str) -> Result[None, GitError]:
        return self._mutate(["reset", "--hard", sha], f"reset --hard {sha[:8]}")

    # -- helpers -------------------------------------------------------------

    def _text(self, args: list[str], command: str) -> Result[str, GitError]:
        result = self._run(args)
        match result:
            case Err(e):
                return Err(self._error(command, e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def _mutate(self, args: list[str], command: str) -> Result[None, GitError]:
        result = self._run(args)
        if isinstance(result, Err):
            return Err(self._error(command, result.error))
        return Ok(None)

    def _error(self, command: str, e: ProcessError) -> GitError:
        return GitError(
            command=command,
            message=e.stderr.strip() or e.stdout.strip() or f"git {command} failed",
            returncode=e.returncode,
        )

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    def _parse_entry(self, line: str) -> StatusEntry | None:
        if len(line) < 4:
            return None
        if line.startswith("?? "):
            return StatusEntry(xy="??", path=line[3:])
        return StatusEntry(xy=line[:2], path=line[3:])
