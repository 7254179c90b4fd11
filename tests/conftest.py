import os
import pathlib

import pytest

from stylebuild.config import BuildConfig, CompressionStyle
from stylebuild.file_operations import LocalFileSystem


def write_tree(root: pathlib.Path, files: dict[str, str]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def bump_mtime(path: pathlib.Path, seconds: int = 10) -> None:
    """Move a file's mtime forward without relying on clock resolution."""
    st = path.stat()
    new = st.st_mtime_ns + seconds * 1_000_000_000
    os.utime(path, ns=(new, new))


class RecordingFileSystem(LocalFileSystem):
    """LocalFileSystem that remembers which paths were read and written."""

    def __init__(self):
        self.reads: list[pathlib.Path] = []
        self.writes: list[pathlib.Path] = []

    def read(self, path):
        self.reads.append(path)
        return super().read(path)

    def write(self, path, data):
        self.writes.append(path)
        super().write(path, data)


@pytest.fixture
def source_root(tmp_path):
    root = tmp_path / "sass"
    root.mkdir()
    return root


@pytest.fixture
def dest_root(tmp_path):
    return tmp_path / "public" / "stylesheets"


@pytest.fixture
def make_config(source_root, dest_root):
    def factory(**overrides) -> BuildConfig:
        values = {
            "source_root": source_root,
            "dest_root": dest_root,
            "patterns": ("*.scss", "*.sass"),
            "suppress_comments": True,
            "compression_style": CompressionStyle.COMPACT,
        }
        values.update(overrides)
        return BuildConfig(**values)

    return factory


@pytest.fixture
def recording_fs():
    return RecordingFileSystem()
