"""Per-invocation build state: sources, units, dependency graph, closures."""

import dataclasses
import logging
import pathlib
from collections import deque
from dataclasses import dataclass, field

from stylebuild.config import BuildConfig
from stylebuild.dependency_tracker import (
    DependencyGraph,
    ImportResolver,
    direct_dependencies,
    transitive_closure,
)
from stylebuild.file_operations import LocalFileSystem, get_ignore_spec
from stylebuild.models import ClosureResult, CompilationUnit, SourceFile

logger = logging.getLogger(__name__)


@dataclass
class BuildManifest:
    """Everything one build knows about the source tree.

    Built once by the orchestrating phase, then only read while units
    compile. Passing it to the next build as ``previous`` carries output
    hashes, file contents and per-unit input snapshots forward.

    Attributes:
        config: Configuration the manifest was built with
        units: Compilation units in resolver order
        sources: Identity -> SourceFile for every unit and everything it imports
        graph: Import graph over ``sources``
        resolver: Import resolver over every stylesheet under the source root
        closures: Unit identity -> transitive closure
        read_errors: Identity -> error for sources that could not be read
    """

    config: BuildConfig
    units: list[CompilationUnit]
    sources: dict[str, SourceFile]
    graph: DependencyGraph
    resolver: ImportResolver
    closures: dict[str, ClosureResult]
    read_errors: dict[str, OSError] = field(default_factory=dict)

    def unit(self, source_id: str) -> CompilationUnit | None:
        for unit in self.units:
            if unit.source_id == source_id:
                return unit
        return None

    def inputs_for(self, source_id: str) -> dict[str, int]:
        """Identity -> mtime of a unit's source and its whole closure."""
        closure = self.closures.get(source_id)
        identities = {source_id} | set(closure.identities if closure else ())
        return {i: self.sources[i].mtime for i in sorted(identities) if i in self.sources}

    def is_stale(self, unit: CompilationUnit) -> bool:
        """Whether a unit must be recompiled.

        True when it never compiled successfully, its output is gone, or the
        mtime or membership of its source-plus-closure changed.
        """
        if not unit.inputs or unit.output_hash is None:
            return True
        return unit.inputs != self.inputs_for(unit.source_id)

    @classmethod
    def scan(
        cls,
        config: BuildConfig,
        units: list[CompilationUnit],
        fs: LocalFileSystem,
        previous: "BuildManifest | None" = None,
    ) -> "BuildManifest":
        """Read every unit source and, transitively, everything it imports.

        Sources whose mtime matches the previous manifest reuse its content
        instead of being re-read. Dependencies are always re-resolved, since
        glob imports depend on which files exist now.

        Args:
            config: Build configuration
            units: Units from the path resolver
            fs: Filesystem access
            previous: Manifest of the previous build, if any

        Returns:
            The populated manifest
        """
        source_root = pathlib.Path(config.source_root)
        known = fs.list_stylesheets(source_root, get_ignore_spec(tuple(config.exclude)))
        resolver = ImportResolver(known)
        previous_sources = previous.sources if previous is not None else {}

        sources: dict[str, SourceFile] = {}
        read_errors: dict[str, OSError] = {}
        graph = DependencyGraph()
        queue = deque(unit.source_id for unit in units)
        queued = set(queue)

        while queue:
            identity = queue.popleft()
            path = source_root / identity
            try:
                mtime = fs.mtime(path)
                cached = previous_sources.get(identity)
                if cached is not None and cached.mtime == mtime:
                    content = cached.content
                else:
                    content = fs.read(path)
                    logger.debug(f"Read {identity}")
            except OSError as e:
                logger.warning(f"Cannot read {path}: {e}")
                read_errors[identity] = e
                graph.add_node(identity)
                continue

            source = SourceFile(identity=identity, content=content, mtime=mtime)
            dependencies, unresolved = direct_dependencies(source, resolver)
            for target in unresolved:
                logger.warning(f"{identity}: cannot resolve import {target!r}")
            sources[identity] = dataclasses.replace(
                source, dependencies=dependencies, unresolved=unresolved
            )

            graph.add_node(identity)
            for dependency in sorted(dependencies):
                graph.add_edge(identity, dependency)
                if dependency not in queued:
                    queued.add(dependency)
                    queue.append(dependency)

        closures = {unit.source_id: transitive_closure(unit.source_id, graph) for unit in units}

        previous_units = {u.source_id: u for u in previous.units} if previous is not None else {}
        for unit in units:
            carried = previous_units.get(unit.source_id)
            if carried is not None and carried.destination == unit.destination:
                unit.inputs = dict(carried.inputs)
                unit.output_hash = carried.output_hash if fs.exists(unit.destination) else None
            else:
                unit.output_hash = fs.file_hash(unit.destination)

        if previous is not None:
            for removed in sorted(set(previous_units) - {u.source_id for u in units}):
                logger.info(f"Source {removed} is gone; dropping its compilation unit")

        logger.info(
            f"Scanned {len(sources)} source(s) for {len(units)} unit(s), "
            f"{sum(len(s.dependencies) for s in sources.values())} import edge(s)"
        )
        return cls(
            config=config,
            units=units,
            sources=sources,
            graph=graph,
            resolver=resolver,
            closures=closures,
            read_errors=read_errors,
        )
