"""Tests for the orchestrator driver: lock scope, dispatch and status."""

from __future__ import annotations

from pathlib import Path

import pytest

from rel.core.config import RunConfig
from rel.core.result import Err, Ok, Result
from rel.git.repository import GitError, Repository
from rel.output.console import MockConsole
from rel.release.adapters import GhReleaseHost, GitVersionControl, NpmRegistry, PnpmBuilder
from rel.release.errors import ReleaseError
from rel.release.lock import ReleaseLock
from rel.release.orchestrator import (
    Command,
    build_step_context,
    execute,
    load_run_config,
    read_status,
    records_dir_for,
)
from rel.test.fakes import World

OTHER_PID = 4242


def _lock(world: World, *alive: int) -> ReleaseLock:
    return ReleaseLock(world.config.lock_path, pid=100, is_alive=lambda pid: pid in alive)


class TestLock:
    def test_live_lock_blocks_without_mutation(self, world: World) -> None:
        world.config.lock_path.parent.mkdir(parents=True)
        world.config.lock_path.write_text(f"{OTHER_PID}\n", encoding="utf-8")

        result = execute(Command(), ctx=world.ctx(), lock=_lock(world, OTHER_PID))

        assert isinstance(result, Err)
        assert result.error.kind == "lock_held"
        assert not world.store.exists()
        assert world.mutations == []
        assert world.config.lock_path.read_text(encoding="utf-8") == f"{OTHER_PID}\n"

    def test_stale_lock_is_reclaimed(self, world: World) -> None:
        world.config.lock_path.parent.mkdir(parents=True)
        world.config.lock_path.write_text(f"{OTHER_PID}\n", encoding="utf-8")

        result = execute(Command(), ctx=world.ctx(), lock=_lock(world))

        assert result == Ok(None)
        assert world.registry.published == {"demo-pkg@1.0.1"}
        assert not world.config.lock_path.exists()

    def test_lock_released_after_failure(self, world: World) -> None:
        world.registry.failures.add("publish")

        result = execute(Command(), ctx=world.ctx())

        assert isinstance(result, Err)
        assert not world.config.lock_path.exists()

    def test_lock_is_held_while_steps_run(self, world: World) -> None:
        seen: list[bool] = []
        original_build = world.builder.build

        def build_and_look():
            seen.append(world.config.lock_path.exists())
            return original_build()

        world.builder.build = build_and_look  # type: ignore[method-assign]
        execute(Command(), ctx=world.ctx())

        assert seen == [True]


class TestDispatch:
    def test_unknown_step_touches_nothing(self, world: World) -> None:
        result = execute(Command(mode="step", step="deploy"), ctx=world.ctx())

        assert isinstance(result, Err)
        assert result.error.kind == "unknown_step"
        assert not world.config.lock_path.exists()
        assert not world.config.records_dir.exists()

    def test_from_requires_a_name(self, world: World) -> None:
        result = execute(Command(mode="from"), ctx=world.ctx())

        assert isinstance(result, Err)
        assert result.error.kind == "unknown_step"

    def test_single_step(self, world: World) -> None:
        result = execute(Command(mode="step", step="init"), ctx=world.ctx())

        assert result == Ok(None)
        assert world.store.load().completed_steps == ("init",)

    def test_from_step(self, world: World) -> None:
        execute(Command(mode="step", step="init"), ctx=world.ctx())

        result = execute(Command(mode="from", step="show_commits"), ctx=world.ctx())

        assert result == Ok(None)
        assert world.registry.published == {"demo-pkg@1.0.1"}

    def test_rollback_undoes_real_state(self, world: World) -> None:
        world.host.failures.add("create_release")
        execute(Command(), ctx=world.ctx())
        world.host.failures.clear()

        result = execute(Command(mode="rollback"), ctx=world.ctx())

        assert result == Ok(None)
        assert not world.store.exists()
        assert world.vcs.remote_tags == set()

    def test_rollback_dry_run_only_previews(self, world: World) -> None:
        world.host.failures.add("create_release")
        execute(Command(), ctx=world.ctx())
        state = world.store.load()
        before = list(world.mutations)

        result = execute(Command(mode="rollback"), ctx=world.ctx(dry_run=True))

        assert result == Ok(None)
        assert world.store.load() == state
        assert world.mutations == before

    def test_incomplete_rollback_is_an_error(self, world: World) -> None:
        world.host.failures.add("create_release")
        execute(Command(), ctx=world.ctx())
        world.vcs.failures.add("reset_hard")

        result = execute(Command(mode="rollback"), ctx=world.ctx())

        assert isinstance(result, Err)
        assert result.error.kind == "rollback_incomplete"
        assert not world.store.exists()


class TestStatus:
    def test_no_release(self, world: World) -> None:
        status = read_status(world.config)

        assert not status.in_progress
        assert not any(s.done for s in status.steps)

    def test_reads_without_lock(self, world: World) -> None:
        world.registry.failures.add("publish")
        execute(Command(), ctx=world.ctx())
        world.config.lock_path.write_text(f"{OTHER_PID}\n", encoding="utf-8")

        status = read_status(world.config)

        assert status.in_progress
        assert status.state.last_step == "git_commit"

    def test_dry_run_status_reads_dry_record(self, world: World) -> None:
        execute(Command(), ctx=world.ctx(dry_run=True))

        assert read_status(world.config).in_progress is False
        assert read_status(RunConfig(root=world.root, dry_run=True)).in_progress is True


def test_production_wiring(tmp_path: Path) -> None:
    ctx = build_step_context(RunConfig(root=tmp_path), MockConsole())

    assert isinstance(ctx.vcs, GitVersionControl)
    assert isinstance(ctx.registry, NpmRegistry)
    assert isinstance(ctx.host, GhReleaseHost)
    assert isinstance(ctx.builder, PnpmBuilder)
    assert ctx.builder.output_dir == tmp_path / "dist"


def _load(root: Path) -> Result[RunConfig, ReleaseError]:
    return load_run_config(root=root, bump=None, dry_run=False, assume_yes=False, edit=None)


class TestLoadRunConfig:
    def test_plain_checkout_keeps_records_in_dot_git(self, world: World) -> None:
        config = _load(world.root)

        assert isinstance(config, Ok)
        assert config.value.records_dir == world.root / ".git" / "rel"

    def test_pointer_file_uses_git_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        checkout = tmp_path / "wt"
        checkout.mkdir()
        (checkout / ".git").write_text("gitdir: ../main/.git/worktrees/wt\n", encoding="utf-8")
        git_dir = tmp_path / "main" / ".git" / "worktrees" / "wt"
        monkeypatch.setattr(Repository, "git_dir", lambda self: Ok(git_dir))

        config = _load(checkout)

        assert isinstance(config, Ok)
        assert config.value.records_dir == git_dir / "rel"
        assert config.value.lock_path == git_dir / "rel" / "lock"

    def test_git_failure_falls_back_to_default(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".git").write_text("gitdir: /nowhere\n", encoding="utf-8")
        monkeypatch.setattr(
            Repository, "git_dir", lambda self: Err(GitError(command="rev-parse", message="x"))
        )

        assert records_dir_for(tmp_path) is None

    def test_invalid_release_toml_is_config_invalid(self, world: World) -> None:
        (world.root / "release.toml").write_text('bump = "huge"\n', encoding="utf-8")

        config = _load(world.root)

        assert isinstance(config, Err)
        assert config.error.kind == "config_invalid"
        assert "release.toml" in config.error.message
        assert config.error.hint is not None and "release.toml" in config.error.hint

    def test_cli_flags_override_record(self, world: World) -> None:
        (world.root / "release.toml").write_text('bump = "minor"\nedit = false\n', encoding="utf-8")

        config = load_run_config(
            root=world.root, bump="major", dry_run=True, assume_yes=True, edit=None
        )

        assert isinstance(config, Ok)
        assert config.value.bump == "major"
        assert config.value.edit is False
        assert config.value.dry_run is True
