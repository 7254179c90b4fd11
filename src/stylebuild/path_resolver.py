"""Expand glob patterns over the source root into compilation units."""

import logging
import pathlib
import posixpath
import re
from collections.abc import Sequence

import pathspec

from stylebuild.constants import OUTPUT_EXTENSION
from stylebuild.errors import ResolutionError
from stylebuild.file_operations import LocalFileSystem, get_ignore_spec
from stylebuild.models import CompilationUnit
from stylebuild.syntax_detection import is_partial

logger = logging.getLogger(__name__)


def compile_pattern(pattern: str) -> pathspec.PathSpec:
    """Validate one glob pattern and compile it.

    Args:
        pattern: gitignore-style wildmatch pattern, relative to the source root

    Returns:
        PathSpec matching the pattern

    Raises:
        ResolutionError: If the pattern is empty, absolute, escapes the
            source root or is rejected by pathspec
    """
    if not isinstance(pattern, str):
        raise ResolutionError(f"Pattern must be a string, got {pattern!r}")
    stripped = pattern.strip()
    if not stripped:
        raise ResolutionError("Empty glob pattern")
    if stripped.startswith("!"):
        raise ResolutionError(f"Negated pattern {pattern!r} not supported here; use exclude")
    if pathlib.PurePosixPath(stripped).is_absolute() or pathlib.PureWindowsPath(stripped).drive:
        raise ResolutionError(f"Pattern {pattern!r} must be relative to the source root")
    if ".." in stripped.split("/"):
        raise ResolutionError(f"Pattern {pattern!r} escapes the source root")
    try:
        return pathspec.PathSpec.from_lines("gitwildmatch", [stripped])
    except (ValueError, re.error) as e:
        raise ResolutionError(f"Invalid glob pattern {pattern!r}: {e}") from e


def output_id_for(source_id: str) -> str:
    """Map ``dir/name.scss`` to ``dir/name.css``."""
    base, _ = posixpath.splitext(source_id)
    return base + OUTPUT_EXTENSION


def resolve(
    source_root: pathlib.Path,
    patterns: Sequence[str],
    dest_root: pathlib.Path,
    exclude: Sequence[str] = (),
    fs: LocalFileSystem | None = None,
) -> list[CompilationUnit]:
    """Resolve glob patterns to an ordered, deduplicated list of compilation units.

    Args:
        source_root: Directory holding the stylesheets
        patterns: Glob patterns applied in order
        dest_root: Directory outputs are written to
        exclude: Patterns removed from every match
        fs: Filesystem access (LocalFileSystem if None)

    Returns:
        One unit per matched non-partial stylesheet, in first-seen order

    Raises:
        ResolutionError: If source_root is not a directory or a pattern is invalid
    """
    fs = fs or LocalFileSystem()
    source_root = pathlib.Path(source_root)
    dest_root = pathlib.Path(dest_root)

    if isinstance(patterns, str):
        raise ResolutionError("patterns must be a sequence of strings, not a single string")
    specs = [compile_pattern(p) for p in patterns]
    if not source_root.is_dir():
        raise ResolutionError(f"Source root not found: {source_root}")

    try:
        ignore_spec = get_ignore_spec(tuple(exclude))
    except (ValueError, re.error) as e:
        raise ResolutionError(f"Invalid exclude pattern: {e}") from e

    candidates = [c for c in fs.list_stylesheets(source_root, ignore_spec) if not is_partial(c)]

    units: list[CompilationUnit] = []
    seen: set[str] = set()
    for pattern, spec in zip(patterns, specs):
        matched = [c for c in candidates if spec.match_file(c)]
        logger.debug(f"Pattern {pattern!r} matched {len(matched)} file(s)")
        for source_id in matched:
            if source_id in seen:
                continue
            seen.add(source_id)
            output_id = output_id_for(source_id)
            units.append(
                CompilationUnit(
                    source_id=source_id,
                    output_id=output_id,
                    destination=dest_root / output_id,
                )
            )

    return units
