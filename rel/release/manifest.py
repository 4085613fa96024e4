"""Package manifest (package.json) reader."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from rel.core.result import Err, Ok, Result
from rel.core.structured import as_str_dict, get_str, get_table
from rel.release.errors import ReleaseError


@dataclass(frozen=True, slots=True)
class Manifest:
    name: str
    version: str
    repository_url: str | None = None

    @property
    def spec(self) -> str:
        """`name@version` as understood by the registry."""
        return f"{self.name}@{self.version}"

    @property
    def repo_slug(self) -> str | None:
        """`owner/name` on GitHub, derived from the repository URL."""
        return github_slug(self.repository_url) if self.repository_url else None


def github_slug(url: str) -> str | None:
    cleaned = url.strip().removeprefix("git+").removesuffix("/").removesuffix(".git")
    for marker in ("github.com/", "github.com:"):
        if marker in cleaned:
            slug = cleaned.split(marker, 1)[1].strip("/")
            return slug if slug.count("/") == 1 else None
    return None


def read_manifest(path: Path) -> Result[Manifest, ReleaseError]:
    try:
        data_obj: object = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(
            ReleaseError(
                kind="manifest_invalid",
                message=f"manifest not found: {path.name}",
                hint="Run rel from the package root.",
            )
        )
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        return Err(ReleaseError(kind="manifest_invalid", message=f"unreadable manifest: {e}"))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ReleaseError(kind="manifest_invalid", message="manifest root must be an object"))

    name = get_str(data, "name")
    version = get_str(data, "version")
    if name is None or version is None:
        return Err(
            ReleaseError(
                kind="manifest_invalid",
                message="manifest is missing name or version",
                hint=str(path),
            )
        )

    # "repository" is either a URL string or {"type": "git", "url": "..."}.
    repo_table = get_table(data, "repository")
    url = get_str(repo_table, "url") if repo_table is not None else get_str(data, "repository")

    return Ok(Manifest(name=name, version=version, repository_url=url))
