from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rel.core.config import RunConfig
from rel.core.result import Result
from rel.output.console import ConsoleProtocol
from rel.release.errors import ReleaseError
from rel.release.manifest import Manifest, read_manifest
from rel.release.ports import Builder, Operator, PackageRegistry, ReleaseHost, VersionControl


@dataclass(frozen=True, slots=True)
class StepContext:
    """Everything a step may touch, passed explicitly."""

    config: RunConfig
    vcs: VersionControl
    registry: PackageRegistry
    host: ReleaseHost
    builder: Builder
    operator: Operator
    console: ConsoleProtocol

    def manifest(self) -> Result[Manifest, ReleaseError]:
        # Re-read on every call: the version step rewrites it.
        return read_manifest(self.config.manifest_path)

    def path(self, relative: str) -> Path:
        return self.config.root / relative

    def relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.config.root).as_posix()
        except ValueError:
            return str(path)
