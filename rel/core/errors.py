"""Exit codes for the release CLI.

These values are the process exit status of `rel` and should remain stable
so that CI scripts can branch on them.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for release commands.

    - 0: Success or nothing to do
    - 1: User error (unknown step, bad flags, invalid release.toml)
    - 2: Preflight failure (preconditions not met, nothing mutated)
    - 3: Lock held by another live release process
    - 4: A step action failed (resume or roll back)
    - 5: Rollback finished but some compensations failed
    """

    OK = 0
    USER_ERROR = 1
    PREFLIGHT_FAILED = 2
    LOCK_HELD = 3
    STEP_FAILED = 4
    ROLLBACK_INCOMPLETE = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK
