"""Git operations used by the release pipeline.

Usage:
    from rel.git import Repository

    repo = Repository(Path("/path/to/checkout"))
    tag = repo.last_tag()
"""

from rel.git.repository import (
    GitError,
    Repository,
    StatusEntry,
)

__all__ = [
    "GitError",
    "Repository",
    "StatusEntry",
]
