"""stylebuild: a glob-driven Sass/SCSS stylesheet compiler.

This package resolves glob patterns over a source tree, tracks imports
between stylesheets, and recompiles only what changed, skipping writes
whose output is byte-identical to what is already on disk.
"""

from stylebuild.cli import main
from stylebuild.config import BuildConfig, CompressionStyle, load_config
from stylebuild.errors import CompileError, ConfigError, CycleError, ResolutionError
from stylebuild.models import BuildReport, CompilationUnit, UnitStatus
from stylebuild.pipeline import build

__version__ = "0.1.0"
__all__ = [
    "main",
    "build",
    "load_config",
    "BuildConfig",
    "BuildReport",
    "CompilationUnit",
    "CompressionStyle",
    "UnitStatus",
    "CompileError",
    "ConfigError",
    "CycleError",
    "ResolutionError",
]
