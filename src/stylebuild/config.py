"""Build configuration: defaults, YAML file, environment overrides.

Precedence, highest first:
1. Explicit overrides (CLI flags)
2. Environment variables (STYLEBUILD_*)
3. Configuration file
4. Defaults
"""

import dataclasses
import enum
import logging
import os
import pathlib
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import yaml

from stylebuild.constants import DEFAULT_CONFIG_FILENAME, ENV_PREFIX
from stylebuild.errors import ConfigError

logger = logging.getLogger(__name__)


class CompressionStyle(enum.Enum):
    READABLE = "readable"
    COMPACT = "compact"


@dataclass(frozen=True)
class BuildConfig:
    """Options recognized by the build pipeline.

    Attributes:
        source_root: Directory searched for stylesheets
        dest_root: Directory compiled CSS is written to
        patterns: Glob patterns applied in order
        exclude: Glob patterns removed from every match
        suppress_comments: Drop ``/* line N, file */`` comments from output
        compression_style: Readable (expanded) or compact (compressed) output
        public_path_prefix: URL prefix the stylesheets are published under
        images_url: URL prefix for ``image-url()``; defaults to ``<prefix>/images``
        fonts_url: URL prefix for ``font-url()``; defaults to ``<prefix>/fonts``
        images_dir: Local image directory, used to warn about missing assets
        fonts_dir: Local font directory, used to warn about missing assets
        jobs: Number of parallel compile workers
    """

    source_root: pathlib.Path = pathlib.Path("sass")
    dest_root: pathlib.Path = pathlib.Path("stylesheets")
    patterns: tuple[str, ...] = ("*.scss", "*.sass")
    exclude: tuple[str, ...] = ()
    suppress_comments: bool = False
    compression_style: CompressionStyle = CompressionStyle.READABLE
    public_path_prefix: str = "/"
    images_url: str | None = None
    fonts_url: str | None = None
    images_dir: pathlib.Path | None = None
    fonts_dir: pathlib.Path | None = None
    jobs: int = 1

    def __post_init__(self):
        if self.jobs < 1:
            raise ConfigError(f"jobs must be at least 1, got {self.jobs}")

    @property
    def resolved_images_url(self) -> str:
        return self.images_url or _join_url(self.public_path_prefix, "images")

    @property
    def resolved_fonts_url(self) -> str:
        return self.fonts_url or _join_url(self.public_path_prefix, "fonts")


def _join_url(prefix: str, part: str) -> str:
    return prefix.rstrip("/") + "/" + part


_PATH_FIELDS = {"source_root", "dest_root", "images_dir", "fonts_dir"}
_LIST_FIELDS = {"patterns", "exclude"}
_BOOL_FIELDS = {"suppress_comments"}
_FIELD_NAMES = {f.name for f in dataclasses.fields(BuildConfig)}


def _coerce(name: str, value: Any, base_dir: pathlib.Path) -> Any:
    """Convert a raw YAML/env/CLI value to the type of field ``name``."""
    if value is None:
        if name in ("images_url", "fonts_url", "images_dir", "fonts_dir"):
            return None
        raise ConfigError(f"{name} must not be empty")

    if name in _PATH_FIELDS:
        if not isinstance(value, (str, os.PathLike)):
            raise ConfigError(f"{name} must be a path, got {value!r}")
        path = pathlib.Path(value).expanduser()
        return path if path.is_absolute() else base_dir / path

    if name in _LIST_FIELDS:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ConfigError(f"{name} must be a list of glob patterns, got {value!r}")
        return tuple(value)

    if name in _BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "1", "yes", "false", "0", "no"):
            return value.lower() in ("true", "1", "yes")
        raise ConfigError(f"{name} must be a boolean, got {value!r}")

    if name == "compression_style":
        if isinstance(value, CompressionStyle):
            return value
        try:
            return CompressionStyle(str(value).lower())
        except ValueError:
            choices = ", ".join(s.value for s in CompressionStyle)
            raise ConfigError(f"compression_style must be one of {choices}, got {value!r}") from None

    if name == "jobs":
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"jobs must be an integer, got {value!r}") from None

    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a string, got {value!r}")
    return value


def config_from_mapping(data: Mapping[str, Any], base_dir: pathlib.Path | None = None) -> BuildConfig:
    """Build a BuildConfig from a plain mapping.

    Args:
        data: Field name -> raw value
        base_dir: Directory relative paths are resolved against (cwd if None)

    Returns:
        Validated configuration

    Raises:
        ConfigError: On unknown keys or invalid values
    """
    base_dir = base_dir or pathlib.Path.cwd()
    unknown = sorted(set(data) - _FIELD_NAMES)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
    values = {name: _coerce(name, value, base_dir) for name, value in data.items()}
    if "source_root" not in values:
        values["source_root"] = base_dir / BuildConfig.source_root
    if "dest_root" not in values:
        values["dest_root"] = base_dir / BuildConfig.dest_root
    return BuildConfig(**values)


def _env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    overrides = {}
    for name in sorted(_FIELD_NAMES):
        env_var = f"{ENV_PREFIX}{name.upper()}"
        if env_var in environ:
            value: Any = environ[env_var]
            if name in _LIST_FIELDS:
                value = [p.strip() for p in value.split(",") if p.strip()]
            overrides[name] = value
            logger.info(f"Environment override: {name} = {environ[env_var]}")
    return overrides


def load_config(
    config_path: pathlib.Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> BuildConfig:
    """Load build configuration.

    Args:
        config_path: YAML file to read. If None, ``stylebuild.yaml`` in the
            current directory is used when it exists.
        overrides: Values taking precedence over the file and environment
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Loaded configuration

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = pathlib.Path.cwd() / DEFAULT_CONFIG_FILENAME

    data: dict[str, Any] = {}
    if config_path.is_file():
        logger.info(f"Loading configuration from {config_path}")
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Could not read {config_path}: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"{config_path} must contain a mapping at the top level")
        data.update(loaded or {})
        base_dir = config_path.resolve().parent
    elif explicit:
        raise ConfigError(f"Configuration file not found: {config_path}")
    else:
        logger.info(f"No configuration file found at {config_path}, using defaults")
        base_dir = pathlib.Path.cwd()

    data.update(_env_overrides(os.environ if environ is None else environ))
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    return config_from_mapping(data, base_dir)
