"""Build orchestration: resolve, scan, plan, compile in parallel, report."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

from tqdm import tqdm

from stylebuild.compiler import StylesheetCompiler, write_if_changed
from stylebuild.config import BuildConfig
from stylebuild.errors import CompileError, CycleError
from stylebuild.file_operations import LocalFileSystem
from stylebuild.manifest import BuildManifest
from stylebuild.models import BuildReport, CompilationUnit, UnitResult, UnitStatus
from stylebuild.path_resolver import resolve

logger = logging.getLogger(__name__)


def _compile_unit(
    unit: CompilationUnit,
    manifest: BuildManifest,
    compiler: StylesheetCompiler,
    fs: LocalFileSystem,
    cancel: threading.Event | None,
) -> tuple[UnitStatus, CompileError | None]:
    """Compile and write one unit. Runs on a worker thread.

    Touches only ``unit`` and its output file; the manifest is read-only here.
    """
    if cancel is not None and cancel.is_set():
        return UnitStatus.CANCELLED, None

    read_error = manifest.read_errors.get(unit.source_id)
    source = manifest.sources.get(unit.source_id)
    try:
        if source is None:
            raise CompileError(unit.source_id, read_error or "source not readable")
        result = compiler.compile(unit, source.content, manifest)
        written = write_if_changed(unit, result, fs)
    except CompileError as e:
        unit.inputs = {}
        return UnitStatus.FAILED, e

    unit.inputs = manifest.inputs_for(unit.source_id)
    return (UnitStatus.WRITTEN if written else UnitStatus.UNCHANGED), None


def build(
    config: BuildConfig,
    previous: BuildManifest | None = None,
    fs: LocalFileSystem | None = None,
    cancel: threading.Event | None = None,
    force: bool = False,
    progress: bool = False,
) -> BuildReport:
    """Run one build.

    Args:
        config: Build configuration
        previous: Manifest from the previous build in this process, if any
        fs: Filesystem access (LocalFileSystem if None)
        cancel: Set to stop starting new units; in-flight units finish
        force: Recompile every unit regardless of mtimes
        progress: Show a progress bar

    Returns:
        BuildReport listing every unit in resolver order

    Raises:
        ResolutionError: If the source root or a pattern is invalid
    """
    start = time.monotonic()
    fs = fs or LocalFileSystem()

    units = resolve(config.source_root, config.patterns, config.dest_root, config.exclude, fs)
    logger.info(f"Resolved {len(units)} compilation unit(s) under {config.source_root}")

    manifest = BuildManifest.scan(config, units, fs, previous)
    compiler = StylesheetCompiler(config)

    results: list[UnitResult | None] = [None] * len(units)
    pending: list[tuple[int, CompilationUnit, list[CycleError]]] = []
    for index, unit in enumerate(units):
        warnings = []
        closure = manifest.closures[unit.source_id]
        if closure.cycle_detected:
            warning = CycleError(unit.source_id, closure.cycle)
            logger.warning(str(warning))
            warnings.append(warning)

        if force or manifest.is_stale(unit):
            pending.append((index, unit, warnings))
        else:
            logger.debug(f"{unit.source_id} up to date")
            results[index] = UnitResult(unit=unit, status=UnitStatus.UP_TO_DATE, warnings=warnings)

    logger.info(f"{len(pending)} of {len(units)} unit(s) need compiling")

    if pending:
        with (
            tqdm(total=len(pending), desc="Compiling", unit="file", disable=not progress) as pbar,
            ThreadPoolExecutor(max_workers=config.jobs) as executor,
        ):
            futures = {
                executor.submit(_compile_unit, unit, manifest, compiler, fs, cancel): (
                    index,
                    unit,
                    warnings,
                )
                for index, unit, warnings in pending
            }
            for future in as_completed(futures):
                index, unit, warnings = futures[future]
                status, error = future.result()
                if error is not None:
                    logger.error(f"Failed to compile {error}")
                results[index] = UnitResult(unit=unit, status=status, error=error, warnings=warnings)
                pbar.update(1)

    report = BuildReport(
        results=[r for r in results if r is not None],
        manifest=manifest,
        elapsed=time.monotonic() - start,
    )
    logger.info(
        f"Build finished: {report.compiled} compiled, {report.skipped} skipped, "
        f"{report.failed} failed, {report.cancelled} cancelled"
    )
    return report
