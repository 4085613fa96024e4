from __future__ import annotations

import logging
from collections.abc import Iterator
from functools import partial
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

import rel.cli.commands.release as release_cmd
import rel.release.orchestrator as orchestrator
from rel import __version__
from rel.cli.app import app
from rel.cli.commands._helpers import exit_code_for, report_error
from rel.cli.context import CLIContext, build_context
from rel.core.config import RunConfig
from rel.core.errors import ErrorCode
from rel.output.console import ConsoleProtocol, MockConsole
from rel.release.context import StepContext
from rel.release.errors import ReleaseError, step_failed
from rel.release.lock import ReleaseLock
from rel.test.fakes import INITIAL_SHA, World

runner = CliRunner()


@pytest.fixture(autouse=True)
def _detach_release_log() -> Iterator[None]:
    yield
    logger = logging.getLogger("rel")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


@pytest.fixture
def cli_world(world: World, monkeypatch: pytest.MonkeyPatch) -> World:
    """Route the command through the real config loader and the fake ports."""

    def _build_context(**kwargs: object) -> CLIContext:
        ctx = build_context(**kwargs)  # type: ignore[arg-type]
        return CLIContext(config=ctx.config, console=world.console)

    def _build_step_context(config: RunConfig, console: ConsoleProtocol) -> StepContext:
        return StepContext(
            config=config,
            vcs=world.vcs,
            registry=world.registry,
            host=world.host,
            builder=world.builder,
            operator=world.operator,
            console=console,
        )

    monkeypatch.setattr(release_cmd, "build_context", _build_context)
    monkeypatch.setattr(release_cmd, "build_step_context", _build_step_context)
    return world


def _release(world: World, **flags: object) -> None:
    args: dict[str, object] = {
        "patch": False,
        "minor": False,
        "major": False,
        "auto": False,
        "dry_run": False,
        "yes": False,
        "no_edit": True,
        "step": None,
        "from_step": None,
        "status": False,
        "rollback": False,
        "list_steps": False,
        "root": world.root,
        "version": False,
    }
    args.update(flags)
    release_cmd.release(**args)  # type: ignore[arg-type]


def _exit_code(world: World, **flags: object) -> int:
    with pytest.raises(typer.Exit) as exc:
        _release(world, **flags)
    return exc.value.exit_code


class TestArguments:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_list_steps(self) -> None:
        result = runner.invoke(app, ["--list-steps"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0].split()[:2] == ["1.", "preflight"]
        assert lines[-1].split()[1] == "cleanup"

    def test_two_bumps_are_rejected(self) -> None:
        result = runner.invoke(app, ["--patch", "--major"])

        assert result.exit_code == int(ErrorCode.USER_ERROR)

    def test_modes_are_exclusive(self) -> None:
        result = runner.invoke(app, ["--status", "--rollback"])

        assert result.exit_code == int(ErrorCode.USER_ERROR)
        assert "cannot be combined" in result.output

    def test_missing_root(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--status", "--root", str(tmp_path / "missing")])

        assert result.exit_code == int(ErrorCode.USER_ERROR)

    def test_invalid_release_toml(self, world: World) -> None:
        (world.root / "release.toml").write_text('bump = "huge"\n', encoding="utf-8")

        result = runner.invoke(app, ["--status", "--root", str(world.root)])

        assert result.exit_code == int(ErrorCode.USER_ERROR)
        assert "release.toml" in result.output
        assert "hint: Fix or remove" in result.output


class TestRelease:
    def test_full_release(self, cli_world: World) -> None:
        _release(cli_world)

        assert cli_world.registry.published == {"demo-pkg@1.0.1"}
        assert cli_world.operator.prompts == ["Publish demo-pkg@1.0.1? This cannot be undone."]
        assert cli_world.config.log_path.exists()

    def test_bump_flag(self, cli_world: World) -> None:
        _release(cli_world, minor=True, yes=True)

        assert cli_world.registry.published == {"demo-pkg@1.1.0"}
        assert cli_world.operator.prompts == []

    def test_step_failure_exit_code(self, cli_world: World) -> None:
        cli_world.registry.failures.add("publish")

        assert _exit_code(cli_world) == int(ErrorCode.STEP_FAILED)
        assert cli_world.console.find(
            "failed at step npm_publish; last successful step: git_commit"
        )
        assert cli_world.console.find("Run rel to resume, or rel --rollback to undo.")

    def test_abort_at_publish_prompt_keeps_progress(
        self, cli_world: World, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _abort(message: str) -> bool:
            raise typer.Abort()

        monkeypatch.setattr(cli_world.operator, "confirm", _abort)

        assert _exit_code(cli_world) == int(ErrorCode.STEP_FAILED)
        assert cli_world.console.find("Run rel to resume, or rel --rollback to undo.")
        assert cli_world.store.load().last_step == "git_commit"
        assert cli_world.registry.mutations == []
        assert not cli_world.config.lock_path.exists()

    def test_preflight_exit_code(self, cli_world: World) -> None:
        cli_world.vcs.dirty = [".M src/index.ts"]

        assert _exit_code(cli_world) == int(ErrorCode.PREFLIGHT_FAILED)
        assert not cli_world.console.find("failed at step")

    def test_lock_held_exit_code(
        self, cli_world: World, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            orchestrator, "ReleaseLock", partial(ReleaseLock, is_alive=lambda pid: True)
        )
        lock_path = cli_world.config.lock_path
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text("4242\n", encoding="utf-8")

        assert _exit_code(cli_world) == int(ErrorCode.LOCK_HELD)
        assert cli_world.mutations == []

    def test_unknown_step_touches_nothing(self, cli_world: World) -> None:
        assert _exit_code(cli_world, step="nope") == int(ErrorCode.USER_ERROR)
        assert not cli_world.store.exists()
        assert cli_world.mutations == []

    def test_dry_run(self, cli_world: World) -> None:
        _release(cli_world, dry_run=True)

        assert cli_world.mutations == []
        assert cli_world.console.find("nothing will be changed")
        assert not cli_world.store.exists()

    def test_rollback_after_failure(self, cli_world: World) -> None:
        cli_world.registry.failures.add("publish")
        _exit_code(cli_world)

        _release(cli_world, rollback=True)

        assert cli_world.vcs.commits == [(INITIAL_SHA, "chore: init")]
        assert not cli_world.store.exists()


class TestStatus:
    def test_nothing_in_progress(self, cli_world: World) -> None:
        _release(cli_world, status=True)

        assert cli_world.console.find("no release in progress")

    def test_release_in_progress(self, cli_world: World) -> None:
        cli_world.registry.failures.add("publish")
        _exit_code(cli_world)
        cli_world.console.clear()

        _release(cli_world, status=True)

        assert cli_world.console.find("last step: git_commit")
        assert cli_world.console.find("[x] git_commit")
        assert cli_world.console.find("[ ] npm_publish")
        assert cli_world.console.find("version: 1.0.1")


class TestHelpers:
    @pytest.mark.parametrize(
        ("kind", "code"),
        [
            ("preflight_failed", ErrorCode.PREFLIGHT_FAILED),
            ("lock_held", ErrorCode.LOCK_HELD),
            ("unknown_step", ErrorCode.USER_ERROR),
            ("step_failed", ErrorCode.STEP_FAILED),
            ("verification_mismatch", ErrorCode.STEP_FAILED),
            ("rollback_incomplete", ErrorCode.ROLLBACK_INCOMPLETE),
        ],
    )
    def test_exit_code_for(self, kind: str, code: ErrorCode) -> None:
        error = ReleaseError(kind=kind, message="x")  # type: ignore[arg-type]
        assert exit_code_for(error) == code

    def test_report_error_without_step(self) -> None:
        console = MockConsole()

        report_error(console, step_failed("npm auth required", hint="Run: npm login"))

        assert console.messages == ["error: npm auth required", "hint: Run: npm login"]
