"""Tests for the single-run lock."""

from __future__ import annotations

from pathlib import Path

import pytest

import rel.release.lock as lock_module
from rel.core.result import Err, Ok
from rel.output.console import MockConsole
from rel.release.lock import ReleaseLock


def _alive(*pids: int):
    return lambda pid: pid in pids


class TestAcquire:
    def test_acquire_writes_pid(self, tmp_path: Path) -> None:
        lock = ReleaseLock(tmp_path / "lock", pid=100)

        assert lock.acquire() == Ok(None)
        assert (tmp_path / "lock").read_text(encoding="utf-8") == "100\n"
        assert lock.held

    def test_live_owner_blocks(self, tmp_path: Path) -> None:
        (tmp_path / "lock").write_text("200\n", encoding="utf-8")
        lock = ReleaseLock(tmp_path / "lock", pid=100, is_alive=_alive(200))

        result = lock.acquire()

        assert isinstance(result, Err)
        assert result.error.kind == "lock_held"
        assert "pid 200" in result.error.message
        assert (tmp_path / "lock").read_text(encoding="utf-8") == "200\n"

    def test_dead_owner_is_reclaimed(self, tmp_path: Path) -> None:
        (tmp_path / "lock").write_text("200\n", encoding="utf-8")
        console = MockConsole()
        lock = ReleaseLock(tmp_path / "lock", console=console, pid=100, is_alive=_alive())

        assert lock.acquire() == Ok(None)
        assert lock.owner() == 100
        assert console.find("reclaiming stale release lock")

    def test_unreadable_owner_is_reclaimed(self, tmp_path: Path) -> None:
        (tmp_path / "lock").write_text("garbage", encoding="utf-8")
        lock = ReleaseLock(tmp_path / "lock", pid=100, is_alive=_alive(100))

        assert lock.acquire() == Ok(None)
        assert lock.owner() == 100


    def test_lost_race_keeps_the_winner(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Another process creates the record between the check and the create."""
        path = tmp_path / "lock"
        real_create = lock_module.create_text_exclusive

        def create_after_rival(target: Path, content: str) -> bool:
            target.write_text("200\n", encoding="utf-8")
            return real_create(target, content)

        monkeypatch.setattr(lock_module, "create_text_exclusive", create_after_rival)
        lock = ReleaseLock(path, pid=100, is_alive=_alive(200))

        result = lock.acquire()

        assert isinstance(result, Err)
        assert result.error.kind == "lock_held"
        assert path.read_text(encoding="utf-8") == "200\n"
        assert not lock.held


class TestRelease:
    def test_release_removes_own_lock(self, tmp_path: Path) -> None:
        lock = ReleaseLock(tmp_path / "lock", pid=100)
        lock.acquire()

        lock.release()

        assert not (tmp_path / "lock").exists()
        assert not lock.held

    def test_release_leaves_foreign_lock(self, tmp_path: Path) -> None:
        lock = ReleaseLock(tmp_path / "lock", pid=100)
        lock.acquire()
        (tmp_path / "lock").write_text("300\n", encoding="utf-8")

        lock.release()

        assert (tmp_path / "lock").read_text(encoding="utf-8") == "300\n"


class TestHold:
    def test_released_on_normal_exit(self, tmp_path: Path) -> None:
        lock = ReleaseLock(tmp_path / "lock", pid=100)

        with lock.hold() as acquired:
            assert acquired == Ok(None)
            assert (tmp_path / "lock").exists()

        assert not (tmp_path / "lock").exists()

    def test_released_on_interrupt(self, tmp_path: Path) -> None:
        lock = ReleaseLock(tmp_path / "lock", pid=100)

        with pytest.raises(KeyboardInterrupt):
            with lock.hold():
                raise KeyboardInterrupt

        assert not (tmp_path / "lock").exists()

    def test_failed_acquire_leaves_lock_alone(self, tmp_path: Path) -> None:
        (tmp_path / "lock").write_text("200\n", encoding="utf-8")
        lock = ReleaseLock(tmp_path / "lock", pid=100, is_alive=_alive(200))

        with lock.hold() as acquired:
            assert isinstance(acquired, Err)

        assert (tmp_path / "lock").read_text(encoding="utf-8") == "200\n"
