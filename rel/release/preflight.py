"""Preflight checks run before anything is mutated.

Fatal checks (ERROR) abort the release; warnings are printed and the
release proceeds:

- manifest: package.json readable with name and version (fatal)
- registry auth: logged in to the package registry (fatal)
- release host auth: gh authenticated (warning, gh_release can no-op)
- working tree: no uncommitted changes (fatal)
- branch: on the configured or remote default branch (warning)
- commits: at least one commit since the last tag (fatal)
- changesets: .changeset/ directory present (warning)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from rel.core.result import Err
from rel.output.console import ConsoleProtocol, Style
from rel.release.context import StepContext

_MAX_LISTED_PATHS = 5


class CheckStatus(Enum):
    OK = auto()
    WARNING = auto()
    """Check failed but the release can proceed."""
    ERROR = auto()
    """Check failed; nothing may be mutated."""


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Result of a single preflight check.

    Attributes:
        name: Short identifier for what was checked (e.g., "manifest")
        status: Whether the check passed, warned, or failed
        message: Human-readable result message
        hint: Optional fix command
    """

    name: str
    status: CheckStatus
    message: str
    hint: str | None = None

    @property
    def is_error(self) -> bool:
        return self.status == CheckStatus.ERROR

    @property
    def is_warning(self) -> bool:
        return self.status == CheckStatus.WARNING

    @classmethod
    def success(cls, name: str, message: str) -> "CheckResult":
        return cls(name=name, status=CheckStatus.OK, message=message)

    @classmethod
    def warning(cls, name: str, message: str, hint: str | None = None) -> "CheckResult":
        return cls(name=name, status=CheckStatus.WARNING, message=message, hint=hint)

    @classmethod
    def error(cls, name: str, message: str, hint: str | None = None) -> "CheckResult":
        return cls(name=name, status=CheckStatus.ERROR, message=message, hint=hint)


@dataclass(frozen=True, slots=True)
class PreflightChecker:
    ctx: StepContext

    def check_all(self) -> list[CheckResult]:
        return [
            self.check_manifest(),
            self.check_registry_auth(),
            self.check_host_auth(),
            self.check_clean_tree(),
            self.check_branch(),
            self.check_commits(),
            self.check_changeset_dir(),
        ]

    def check_manifest(self) -> CheckResult:
        manifest = self.ctx.manifest()
        if isinstance(manifest, Err):
            return CheckResult.error("manifest", manifest.error.message, hint=manifest.error.hint)
        return CheckResult.success("manifest", manifest.value.spec)

    def check_registry_auth(self) -> CheckResult:
        who = self.ctx.registry.whoami()
        if isinstance(who, Err):
            return CheckResult.error("registry", who.error.message, hint=who.error.hint)
        return CheckResult.success("registry", f"logged in as {who.value}")

    def check_host_auth(self) -> CheckResult:
        auth = self.ctx.host.authenticated()
        if isinstance(auth, Err):
            return CheckResult.warning(
                "release host",
                f"{auth.error.message} (release creation will be skipped)",
                hint=auth.error.hint,
            )
        return CheckResult.success("release host", "authenticated")

    def check_clean_tree(self) -> CheckResult:
        dirty = self.ctx.vcs.dirty_paths()
        if isinstance(dirty, Err):
            return CheckResult.error("working tree", dirty.error.message, hint=dirty.error.hint)
        if not dirty.value:
            return CheckResult.success("working tree", "clean")

        listed = ", ".join(dirty.value[:_MAX_LISTED_PATHS])
        if len(dirty.value) > _MAX_LISTED_PATHS:
            listed += ", ..."
        return CheckResult.error(
            "working tree",
            f"{len(dirty.value)} uncommitted change(s): {listed}",
            hint="Commit or stash your changes first.",
        )

    def check_branch(self) -> CheckResult:
        expected = self.ctx.config.branch or self.ctx.vcs.default_branch()
        current = self.ctx.vcs.current_branch()
        if current is None:
            return CheckResult.warning("branch", "detached HEAD")
        if expected is None:
            return CheckResult.warning(
                "branch",
                f"on {current}; default branch unknown",
                hint='Set branch = "main" in release.toml',
            )
        if current != expected:
            return CheckResult.warning(
                "branch", f"on {current}, releases usually come from {expected}"
            )
        return CheckResult.success("branch", current)

    def check_commits(self) -> CheckResult:
        tag = self.ctx.vcs.last_tag()
        subjects = self.ctx.vcs.commit_subjects(tag)
        if isinstance(subjects, Err):
            return CheckResult.error("commits", subjects.error.message, hint=subjects.error.hint)
        since = f"since {tag}" if tag else "in history (no previous tag)"
        if not subjects.value:
            return CheckResult.error("commits", f"no commits {since}: nothing to release")
        return CheckResult.success("commits", f"{len(subjects.value)} commit(s) {since}")

    def check_changeset_dir(self) -> CheckResult:
        if self.ctx.config.changeset_dir.is_dir():
            return CheckResult.success("changesets", ".changeset/ present")
        return CheckResult.warning(
            "changesets",
            ".changeset/ missing",
            hint="Run: pnpm changeset init",
        )


def print_checks(console: ConsoleProtocol, results: list[CheckResult]) -> None:
    for r in results:
        console.print(f"{r.name}: {r.message}", _style_for_status(r.status))
        if r.hint and r.status != CheckStatus.OK:
            console.print(f"hint: {r.hint}", Style.DIM)


def _style_for_status(status: CheckStatus) -> Style:
    if status == CheckStatus.OK:
        return Style.SUCCESS
    if status == CheckStatus.WARNING:
        return Style.WARNING
    return Style.ERROR
