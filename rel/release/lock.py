"""Single-run lock for a repository checkout.

The lock record is a file holding the pid of the live orchestrator. It is
advisory (only cooperating `rel` processes honour it) and host-local: the
liveness check only sees processes on this machine.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from rel.core.result import Err, Ok, Result
from rel.output.console import ConsoleProtocol
from rel.platform.files import create_text_exclusive, read_text_or_none, remove_file
from rel.platform.process import is_process_alive
from rel.release.errors import ReleaseError

logger = logging.getLogger(__name__)

__all__ = ["ReleaseLock"]


def _parse_owner(text: str | None) -> int | None:
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


class ReleaseLock:
    """At most one live orchestrator per checkout.

    Attributes:
        path: Lock record location
        pid: Identifier written into the record (this process by default)
    """

    def __init__(
        self,
        path: Path,
        *,
        console: ConsoleProtocol | None = None,
        pid: int | None = None,
        is_alive: Callable[[int], bool] = is_process_alive,
    ) -> None:
        self.path = path
        self.pid = pid if pid is not None else os.getpid()
        self._console = console
        self._is_alive = is_alive
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def owner(self) -> int | None:
        """Pid recorded in the lock file, if any."""
        return _parse_owner(read_text_or_none(self.path))

    def acquire(self) -> Result[None, ReleaseError]:
        """Take the lock, reclaiming it from a dead owner.

        Returns Err(lock_held) while another live process owns it.
        """
        if self.path.exists():
            owner = self.owner()
            if owner is not None and owner != self.pid and self._is_alive(owner):
                logger.info("lock held by pid %s", owner)
                return Err(
                    ReleaseError(
                        kind="lock_held",
                        message=f"another release is running (pid {owner})",
                        hint=f"Wait for it to finish. Lock record: {self.path}",
                    )
                )
            self._reclaim(owner)

        # The record appears with the pid already in it: no empty window.
        if not create_text_exclusive(self.path, f"{self.pid}\n"):
            # Lost a race against another starting process.
            return Err(
                ReleaseError(
                    kind="lock_held",
                    message="another release started at the same time",
                    hint=f"Lock record: {self.path}",
                )
            )

        self._held = True
        logger.info("lock acquired by pid %s", self.pid)
        return Ok(None)

    def release(self) -> None:
        """Drop the lock if this process still owns it."""
        if not self._held:
            return
        self._held = False
        if self.owner() == self.pid:
            remove_file(self.path)
            logger.info("lock released by pid %s", self.pid)

    @contextmanager
    def hold(self) -> Iterator[Result[None, ReleaseError]]:
        """Scoped acquisition.

        Yields the acquire result. When acquired, the lock is released on
        normal exit, on any exception and on KeyboardInterrupt.
        """
        acquired = self.acquire()
        try:
            yield acquired
        finally:
            if isinstance(acquired, Ok):
                self.release()

    def _reclaim(self, owner: int | None) -> None:
        what = f"pid {owner} is not running" if owner is not None else "unreadable owner"
        logger.warning("reclaiming stale lock (%s)", what)
        if self._console is not None:
            self._console.warning(f"reclaiming stale release lock ({what})")
        remove_file(self.path)
