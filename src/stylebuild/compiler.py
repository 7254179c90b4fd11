"""Stylesheet compilation: source transforms, libsass, change-skipping writes."""

import logging
import os
import pathlib
import re
from typing import TYPE_CHECKING

import sass

from stylebuild.config import BuildConfig, CompressionStyle
from stylebuild.errors import CompileError
from stylebuild.file_operations import LocalFileSystem, hash_bytes
from stylebuild.indented import sass_to_scss
from stylebuild.lexer import IDENT_CHAR_RE, QUOTES, read_string, skip_trivia
from stylebuild.models import CompilationUnit, CompiledResult
from stylebuild.syntax_detection import get_syntax_from_path

if TYPE_CHECKING:
    from stylebuild.manifest import BuildManifest

logger = logging.getLogger(__name__)

# libsass output_style for each compression setting
OUTPUT_STYLES: dict[CompressionStyle, str] = {
    CompressionStyle.READABLE: "expanded",
    CompressionStyle.COMPACT: "compressed",
}

_ASSET_HELPER_RE = re.compile(r"(image|font)-url\(", re.IGNORECASE)
_ABSOLUTE_URL_RE = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:|/)")


class Transform:
    """A source-to-source step applied to every stylesheet before libsass sees it.

    The set of transforms is fixed; configuration only selects and
    parameterizes them (see ``build_transforms``).
    """

    name = "transform"

    def apply(self, text: str, identity: str) -> str:
        raise NotImplementedError


class AssetUrlRewrite(Transform):
    """Expand ``image-url(x)`` and ``font-url(x)`` against the publishing prefixes.

    A literal argument becomes ``url("<prefix>/x")``; any other expression is
    spliced in with Sass interpolation so it is evaluated by the compiler.
    Absolute URLs pass through unprefixed.
    """

    name = "asset-urls"

    def __init__(
        self,
        images_url: str,
        fonts_url: str,
        images_dir: pathlib.Path | None = None,
        fonts_dir: pathlib.Path | None = None,
    ):
        self.prefixes = {"image": images_url.rstrip("/"), "font": fonts_url.rstrip("/")}
        self.asset_dirs = {"image": images_dir, "font": fonts_dir}

    def _split_call(self, text: str, start: int) -> tuple[str, int] | None:
        """Return (first argument, index after the closing paren) of the call at ``start``."""
        depth = 0
        first_end = None
        i = start
        while i < len(text):
            c = text[i]
            if c in QUOTES:
                i = read_string(text, i)[1]
                continue
            if c == "(":
                depth += 1
            elif c == ")":
                if depth == 0:
                    end = first_end if first_end is not None else i
                    return text[start:end].strip(), i + 1
                depth -= 1
            elif c == "," and depth == 0 and first_end is None:
                first_end = i
            i += 1
        return None

    def _url_for(self, kind: str, argument: str, identity: str) -> str:
        prefix = self.prefixes[kind]
        if argument and argument[0] in QUOTES:
            value, end = read_string(argument, 0)
            if end == len(argument):
                if _ABSOLUTE_URL_RE.match(value):
                    return f'url("{value}")'
                self._check_exists(kind, value, identity)
                escaped = value.replace('"', '\\"')
                return f'url("{prefix}/{escaped}")'
        return f'url("{prefix}/#{{{argument}}}")'

    def _check_exists(self, kind: str, value: str, identity: str) -> None:
        asset_dir = self.asset_dirs[kind]
        if asset_dir is None:
            return
        relative = value.split("?", 1)[0].split("#", 1)[0]
        if not (asset_dir / relative).exists():
            logger.warning(f"{identity}: {kind} asset not found: {asset_dir / relative}")

    def apply(self, text: str, identity: str) -> str:
        indented = get_syntax_from_path(identity) == "sass"
        out = []
        last = 0
        i = 0
        while i < len(text):
            skipped = skip_trivia(text, i, indented)
            if skipped is not None:
                i = skipped
                continue
            m = _ASSET_HELPER_RE.match(text, i)
            if m and (i == 0 or not IDENT_CHAR_RE.match(text[i - 1])):
                call = self._split_call(text, m.end())
                if call is not None:
                    argument, end = call
                    out.append(text[last:i])
                    out.append(self._url_for(m.group(1).lower(), argument, identity))
                    last = i = end
                    continue
            i += 1
        out.append(text[last:])
        return "".join(out)


def build_transforms(config: BuildConfig) -> tuple[Transform, ...]:
    return (
        AssetUrlRewrite(
            config.resolved_images_url,
            config.resolved_fonts_url,
            config.images_dir,
            config.fonts_dir,
        ),
    )


def decode_source(content: bytes) -> str:
    """Decode stylesheet bytes as UTF-8, dropping a byte order mark."""
    return content.decode("utf-8-sig")


class StylesheetCompiler:
    """Compile one stylesheet with a fixed configuration.

    ``compile`` is a pure function of the unit's content and of the imported
    sources held in the manifest; nothing is read from disk while compiling.
    """

    def __init__(self, config: BuildConfig):
        self.config = config
        self.source_root = pathlib.Path(config.source_root).resolve()
        self.output_style = OUTPUT_STYLES[config.compression_style]
        self.source_comments = not config.suppress_comments
        self.transforms = build_transforms(config)

    def preprocess(self, text: str, identity: str) -> str:
        for transform in self.transforms:
            text = transform.apply(text, identity)
        return text

    def _identity_of(self, prev: str, default: str) -> str:
        """Map libsass's ``prev`` (the importing file) back to an identity."""
        if not prev or prev == "stdin" or not os.path.isabs(prev):
            return default
        relative = os.path.relpath(prev, self.source_root)
        if relative.startswith(".."):
            return default
        return pathlib.PurePath(relative).as_posix()

    def load_import(self, identity: str, content: bytes) -> str:
        """Source text handed to libsass for an imported identity."""
        text = self.preprocess(decode_source(content), identity)
        if get_syntax_from_path(identity) == "sass":
            text = sass_to_scss(text)
        return text

    def _make_importer(self, unit: CompilationUnit, manifest: "BuildManifest | None"):
        # identity -> identity that imported it; libsass loads imports depth-first,
        # so following these links from the importing file gives the active chain
        parents: dict[str, str] = {}

        def active_chain(identity: str) -> list[str]:
            chain = [identity]
            while identity in parents:
                identity = parents[identity]
                chain.append(identity)
            return chain

        def importer(path: str, prev: str):
            if manifest is None:
                return None
            importer_id = self._identity_of(prev, unit.source_id)
            identities = manifest.resolver.resolve(path, importer_id)
            if not identities:
                return None
            chain = active_chain(importer_id)
            results = []
            for identity in identities:
                if identity in chain:
                    # Cut the edge closing an import cycle; the rest of the chain still compiles
                    logger.debug(f"{unit.source_id}: skipping cyclic import of {identity} from {importer_id}")
                    continue
                source = manifest.sources.get(identity)
                if source is None:
                    return None
                parents[identity] = importer_id
                results.append((str(self.source_root / identity), self.load_import(identity, source.content)))
            if not results:
                return [(f"{self.source_root / identities[0]}?cycle", "")]
            return results

        return importer

    def compile(
        self,
        unit: CompilationUnit,
        content: bytes,
        manifest: "BuildManifest | None" = None,
    ) -> CompiledResult:
        """Compile a unit's source to CSS.

        Args:
            unit: The compilation unit
            content: Raw bytes of the unit's source
            manifest: Build manifest providing imported sources; without one,
                imports are left to libsass's own lookup in the source root

        Returns:
            Compiled bytes and their SHA-256 hash

        Raises:
            CompileError: On undecodable input or a Sass syntax error
        """
        try:
            text = self.preprocess(decode_source(content), unit.source_id)
            unit_dir = self.source_root / pathlib.PurePosixPath(unit.source_id).parent
            css = sass.compile(
                string=text,
                output_style=self.output_style,
                source_comments=self.source_comments,
                include_paths=[str(unit_dir), str(self.source_root)],
                indented=get_syntax_from_path(unit.source_id) == "sass",
                importers=[(0, self._make_importer(unit, manifest))],
            )
        except UnicodeDecodeError as e:
            raise CompileError(unit.source_id, f"not valid UTF-8: {e}") from e
        except sass.CompileError as e:
            raise CompileError(unit.source_id, str(e).strip()) from e

        data = css.encode("utf-8")
        return CompiledResult(data=data, content_hash=hash_bytes(data))


def write_if_changed(
    unit: CompilationUnit, result: CompiledResult, fs: LocalFileSystem | None = None
) -> bool:
    """Write compiled output unless it matches what was last written.

    Updates ``unit.output_hash`` after a successful write.

    Args:
        unit: Unit whose destination is written
        result: Compiled output
        fs: Filesystem access (LocalFileSystem if None)

    Returns:
        True if the file was written, False if the hash matched

    Raises:
        CompileError: If the output cannot be written
    """
    if unit.output_hash is not None and unit.output_hash == result.content_hash:
        logger.debug(f"{unit.output_id} unchanged, not writing")
        return False

    fs = fs or LocalFileSystem()
    try:
        fs.write(unit.destination, result.data)
    except OSError as e:
        raise CompileError(unit.source_id, f"cannot write {unit.destination}: {e}") from e
    unit.output_hash = result.content_hash
    logger.debug(f"Wrote {unit.destination}")
    return True
