"""File system operations and hashing utilities."""

import hashlib
import os
import pathlib
import tempfile

import pathspec

from stylebuild.constants import ALWAYS_IGNORE_PATTERNS, HASH_CHUNK_SIZE
from stylebuild.syntax_detection import get_syntax_from_path


def hash_bytes(data: bytes) -> str:
    """SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def get_file_hash(file_path: pathlib.Path) -> str | None:
    """Get SHA-256 hash of a file's contents.

    Args:
        file_path: Path to the file

    Returns:
        SHA-256 hash hex string, or None if the file cannot be read
    """
    try:
        hash_sha256 = hashlib.sha256()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                hash_sha256.update(chunk)
        return hash_sha256.hexdigest()
    except OSError:
        return None


def get_ignore_spec(extra_patterns: tuple[str, ...] = ()) -> pathspec.PathSpec:
    """Combines ALWAYS_IGNORE_PATTERNS with user exclude patterns.

    Args:
        extra_patterns: Additional gitignore-style patterns

    Returns:
        PathSpec matching every path that must be skipped
    """
    return pathspec.PathSpec.from_lines("gitwildmatch", [*ALWAYS_IGNORE_PATTERNS, *extra_patterns])


class LocalFileSystem:
    """Filesystem access used by the build pipeline.

    Every method takes absolute paths except ``list_stylesheets``, which
    returns identities relative to the given root. Tests substitute a
    subclass to observe reads and writes.
    """

    def list_stylesheets(self, root: pathlib.Path, ignore_spec: pathspec.PathSpec) -> list[str]:
        """Collect every stylesheet below ``root``.

        Args:
            root: Directory to scan
            ignore_spec: PathSpec with ignore patterns

        Returns:
            Sorted POSIX paths relative to ``root``
        """
        found = []
        for dirpath, dirs, files in os.walk(root, topdown=True):
            dir_path = pathlib.Path(dirpath)
            rel_dir = dir_path.relative_to(root).as_posix()
            prefix = "" if rel_dir == "." else rel_dir + "/"

            # Prune ignored directories
            for d in list(dirs):
                if ignore_spec.match_file(prefix + d + "/"):
                    dirs.remove(d)

            for filename in files:
                relative = prefix + filename
                if ignore_spec.match_file(relative):
                    continue
                if get_syntax_from_path(filename) is not None:
                    found.append(relative)

        return sorted(found)

    def read(self, path: pathlib.Path) -> bytes:
        with open(path, "rb") as f:
            return f.read()

    def mtime(self, path: pathlib.Path) -> int:
        return path.stat().st_mtime_ns

    def exists(self, path: pathlib.Path) -> bool:
        return path.is_file()

    def file_hash(self, path: pathlib.Path) -> str | None:
        return get_file_hash(path)

    def write(self, path: pathlib.Path, data: bytes) -> None:
        """Write ``data`` to ``path`` through a temporary file and rename.

        Readers never observe a half-written output.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
