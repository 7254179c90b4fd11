"""Data models for stylebuild."""

import enum
import pathlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stylebuild.errors import CompileError, CycleError

if TYPE_CHECKING:
    from stylebuild.manifest import BuildManifest


@dataclass(frozen=True)
class SourceFile:
    """A stylesheet discovered under the source root.

    Attributes:
        identity: Normalized POSIX path relative to the source root
        content: Raw file bytes
        mtime: Last observed modification time in nanoseconds
        dependencies: Identities this file imports directly
        unresolved: Import targets that matched no file
    """

    identity: str
    content: bytes
    mtime: int
    dependencies: frozenset[str] = frozenset()
    unresolved: tuple[str, ...] = ()


@dataclass
class CompilationUnit:
    """One source stylesheet paired with its output file.

    Attributes:
        source_id: Identity of the compiled source
        output_id: Output path relative to the destination root
        destination: Absolute output path
        output_hash: SHA-256 of the last successfully written output
        inputs: Identity -> mtime of the source and its closure at the last
            successful compile; empty until one has happened
    """

    source_id: str
    output_id: str
    destination: pathlib.Path
    output_hash: str | None = None
    inputs: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CompiledResult:
    data: bytes
    content_hash: str


@dataclass(frozen=True)
class ClosureResult:
    """Transitive dependencies of one identity.

    Attributes:
        identities: Every identity reachable through import edges, excluding the start
        cycle_detected: True when the walk returned to a node on its active path
        cycle: The first cycle found, first element repeated at the end
    """

    identities: frozenset[str]
    cycle_detected: bool = False
    cycle: tuple[str, ...] = ()


class UnitStatus(enum.Enum):
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    UP_TO_DATE = "up-to-date"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class UnitResult:
    """Outcome of one unit in a build.

    Attributes:
        unit: The compilation unit
        status: What happened to it
        error: Set when status is FAILED
        warnings: Cycle warnings from the unit's closure walk
    """

    unit: CompilationUnit
    status: UnitStatus
    error: CompileError | None = None
    warnings: list[CycleError] = field(default_factory=list)


@dataclass
class BuildReport:
    """Results of one build invocation, in resolver order."""

    results: list[UnitResult]
    manifest: "BuildManifest"
    elapsed: float = 0.0

    def _count(self, *statuses: UnitStatus) -> int:
        return sum(1 for r in self.results if r.status in statuses)

    @property
    def compiled(self) -> int:
        return self._count(UnitStatus.WRITTEN)

    @property
    def skipped(self) -> int:
        return self._count(UnitStatus.UNCHANGED, UnitStatus.UP_TO_DATE)

    @property
    def failed(self) -> int:
        return self._count(UnitStatus.FAILED)

    @property
    def cancelled(self) -> int:
        return self._count(UnitStatus.CANCELLED)

    @property
    def errors(self) -> list[CompileError]:
        return [r.error for r in self.results if r.error is not None]

    @property
    def warnings(self) -> list[CycleError]:
        return [w for r in self.results for w in r.warnings]

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.cancelled == 0
