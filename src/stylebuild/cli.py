"""Command-line interface for stylebuild."""

import argparse
import logging
import pathlib
import sys
import time

from stylebuild.config import BuildConfig, CompressionStyle, load_config
from stylebuild.errors import ConfigError, ResolutionError
from stylebuild.file_operations import LocalFileSystem, get_ignore_spec
from stylebuild.manifest import BuildManifest
from stylebuild.pipeline import build
from stylebuild.reporting import format_report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stylebuild",
        description="Compile Sass/SCSS stylesheets matched by glob patterns into CSS.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        type=pathlib.Path,
        help="YAML configuration file (default: ./stylebuild.yaml when present).",
    )
    parser.add_argument("--source", type=pathlib.Path, help="Source root to search for stylesheets.")
    parser.add_argument("--dest", type=pathlib.Path, help="Directory compiled CSS is written to.")
    parser.add_argument(
        "--pattern",
        action="append",
        dest="patterns",
        help="Glob pattern selecting stylesheets; repeat to add more, in order.",
    )
    parser.add_argument(
        "--style",
        choices=[s.value for s in CompressionStyle],
        help="Output formatting: readable or compact.",
    )
    parser.add_argument(
        "--no-comments",
        action="store_true",
        help="Suppress line comments in the compiled output.",
    )
    parser.add_argument("--jobs", type=int, help="Number of parallel compile workers.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Recompile every unit even when its inputs are unchanged.",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and rebuild whenever a stylesheet changes.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Polling interval in seconds for --watch.",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Hide the progress bar.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed processing information.",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    overrides = {
        "source_root": args.source.resolve() if args.source else None,
        "dest_root": args.dest.resolve() if args.dest else None,
        "patterns": args.patterns,
        "compression_style": args.style,
        "suppress_comments": True if args.no_comments else None,
        "jobs": args.jobs,
    }
    return load_config(args.config, overrides=overrides)


def snapshot_sources(config: BuildConfig, fs: LocalFileSystem) -> dict[str, int]:
    """Return a mapping of stylesheet identity -> mtime under the source root."""
    root = pathlib.Path(config.source_root)
    if not root.is_dir():
        return {}
    mtimes = {}
    for identity in fs.list_stylesheets(root, get_ignore_spec(tuple(config.exclude))):
        try:
            mtimes[identity] = fs.mtime(root / identity)
        except FileNotFoundError:
            # File vanished between walk and stat; skip it.
            continue
    return mtimes


def run_once(
    config: BuildConfig,
    previous: BuildManifest | None,
    force: bool,
    progress: bool,
    verbose: bool,
) -> tuple[int, BuildManifest | None]:
    try:
        report = build(config, previous=previous, force=force, progress=progress)
    except ResolutionError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1, previous
    print(format_report(report, verbose=verbose))
    return (0 if report.ok else 1), report.manifest


def watch(config: BuildConfig, interval: float, force: bool, progress: bool, verbose: bool) -> int:
    """Rebuild whenever a stylesheet under the source root changes, until interrupted."""
    fs = LocalFileSystem()
    print(f"👀 Watching {config.source_root} for changes. Ctrl+C to stop.")
    previous: BuildManifest | None = None
    snapshot = None
    try:
        while True:
            current = snapshot_sources(config, fs)
            if current != snapshot:
                snapshot = current
                _, previous = run_once(config, previous, force, progress, verbose)
                force = False
            time.sleep(interval)
    except KeyboardInterrupt:
        print("\nStopped watching.")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the stylebuild CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 1

    progress = not args.no_progress and sys.stderr.isatty()
    if args.watch:
        return watch(config, args.interval, args.force, progress, args.verbose)

    status, _ = run_once(config, None, args.force, progress, args.verbose)
    return status


if __name__ == "__main__":
    sys.exit(main())
