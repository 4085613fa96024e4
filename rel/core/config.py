"""Run configuration.

`RunConfig` is the single immutable value describing one invocation of the
orchestrator. It is built once from the parsed CLI flags and the optional
`release.toml` record at the repository root, then passed explicitly into the
pipeline. Nothing mutates it during a run.

Recognized release.toml keys (all optional, unknown keys ignored):

    branch = "main"      # default-branch override for preflight
    bump = "minor"       # patch | minor | major | auto
    edit = false         # pause for changelog editing
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, cast

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str

__all__ = [
    "BUMP_CHOICES",
    "BumpChoice",
    "ConfigError",
    "ConfigRecord",
    "RunConfig",
    "build_run_config",
    "default_state_dir",
    "load_config_record",
]

BumpChoice = Literal["patch", "minor", "major", "auto"]
BUMP_CHOICES: tuple[BumpChoice, ...] = ("patch", "minor", "major", "auto")

CONFIG_FILE_NAME = "release.toml"

DEFAULT_BUMP: BumpChoice = "patch"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when release.toml cannot be loaded or holds invalid values."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ConfigRecord:
    """Values read from release.toml. None means "not set"."""

    branch: str | None = None
    bump: BumpChoice | None = None
    edit: bool | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Result[ConfigRecord, str]:
        bump_raw = data.get("bump")
        bump: BumpChoice | None = None
        if bump_raw is not None:
            if not isinstance(bump_raw, str) or bump_raw.strip() not in BUMP_CHOICES:
                choices = "|".join(BUMP_CHOICES)
                return Err(f"bump must be one of {choices}, got {bump_raw!r}")
            bump = cast(BumpChoice, bump_raw.strip())

        edit_raw = data.get("edit")
        if edit_raw is not None and not isinstance(edit_raw, bool):
            return Err(f"edit must be a boolean, got {edit_raw!r}")

        branch_raw = data.get("branch")
        if branch_raw is not None and not isinstance(branch_raw, str):
            return Err(f"branch must be a string, got {branch_raw!r}")

        return Ok(cls(branch=get_str(data, "branch"), bump=bump, edit=edit_raw))


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Immutable configuration for one orchestrator run.

    Attributes:
        root: Repository checkout being released
        bump: Requested bump type ("auto" defers to the commit classifier)
        dry_run: Substitute every mutating action with a logged no-op
        assume_yes: Skip the confirmation before the irreversible publish
        edit: Pause on the changeset so the operator can edit release notes
        branch: Default-branch override (None means detect from the remote)
        state_dir: Directory holding the state, lock and log records
    """

    root: Path
    bump: BumpChoice = DEFAULT_BUMP
    dry_run: bool = False
    assume_yes: bool = False
    edit: bool = True
    branch: str | None = None
    state_dir: Path | None = None

    @property
    def records_dir(self) -> Path:
        return self.state_dir if self.state_dir is not None else default_state_dir(self.root)

    @property
    def real_state_path(self) -> Path:
        return self.records_dir / "state"

    @property
    def dry_run_state_path(self) -> Path:
        return self.records_dir / "state.dry-run"

    @property
    def state_path(self) -> Path:
        """State record for this run's mode.

        Dry runs keep their provisional progress apart from real progress.
        """
        return self.dry_run_state_path if self.dry_run else self.real_state_path

    @property
    def lock_path(self) -> Path:
        return self.records_dir / "lock"

    @property
    def log_path(self) -> Path:
        return self.records_dir / "release.log"

    @property
    def manifest_path(self) -> Path:
        return self.root / "package.json"

    @property
    def changeset_dir(self) -> Path:
        return self.root / ".changeset"

    @property
    def changelog_path(self) -> Path:
        return self.root / "CHANGELOG.md"

    @property
    def dist_dir(self) -> Path:
        return self.root / "dist"


def default_state_dir(root: Path) -> Path:
    """Where the orchestrator keeps its records for a checkout.

    Inside `.git/` the records can never be picked up by `git add -A`.
    """
    git_dir = root / ".git"
    if git_dir.is_dir():
        return git_dir / "rel"
    return root / ".rel"


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config_record(root: Path) -> Result[ConfigRecord, ConfigError]:
    """Load release.toml from the repository root.

    A missing file is not an error: it yields an empty record.
    """
    path = root / CONFIG_FILE_NAME
    if not path.is_file():
        return Ok(ConfigRecord())

    parsed = _parse_toml(path)
    if isinstance(parsed, Err):
        return parsed

    record = ConfigRecord.from_dict(parsed.value)
    if isinstance(record, Err):
        return Err(ConfigError(f"Invalid {CONFIG_FILE_NAME}: {record.error}", path=path))
    return Ok(record.value)


def build_run_config(
    *,
    root: Path,
    record: ConfigRecord,
    bump: BumpChoice | None,
    dry_run: bool,
    assume_yes: bool,
    edit: bool | None,
    state_dir: Path | None = None,
) -> RunConfig:
    """Merge CLI flags over the config record. Flags left unset are None."""
    return RunConfig(
        root=root,
        bump=bump or record.bump or DEFAULT_BUMP,
        dry_run=dry_run,
        assume_yes=assume_yes,
        edit=edit if edit is not None else (record.edit if record.edit is not None else True),
        branch=record.branch,
        state_dir=state_dir,
    )
