"""Import extraction, import resolution and the dependency graph.

The scanner is a small tokenizer rather than a substring search: ``@import``
text inside comments, string literals or ``url()`` tokens is never taken for
a directive.
"""

import logging
import posixpath
import re
from collections.abc import Iterable, Iterator

from stylebuild.constants import (
    GLOB_CHARACTERS,
    IMPORT_CANDIDATE_SUFFIXES,
    INDEX_BASENAMES,
    PARTIAL_PREFIX,
    SYNTAX_MAP,
)
from stylebuild.lexer import QUOTES, at_url, read_string, skip_block_comment, skip_line, skip_trivia, skip_url
from stylebuild.models import ClosureResult, SourceFile
from stylebuild.syntax_detection import get_syntax_from_path

logger = logging.getLogger(__name__)

_DIRECTIVE_RE = re.compile(r"@(import|use|forward)(?![\w-])")
_WORD_RE = re.compile(r"[^\s,;{}()\"']+")
_PLAIN_CSS_PREFIXES = ("http://", "https://", "//")


# --- Lexical scanning ---


def _read_arguments(text: str, i: int, directive: str, indented: bool) -> tuple[list[str], int]:
    """Collect import targets of the directive whose arguments start at ``i``.

    ``@import`` targets followed by anything but a comma (a media query) or
    given as ``url()`` are plain CSS imports and are dropped. ``@use`` and
    ``@forward`` take only their first string; ``as``/``with``/``show``
    clauses are skipped.
    """
    targets: list[str] = []
    current: str | None = None
    plain = False
    depth = 0

    def finish():
        nonlocal current, plain
        if current is not None and not plain:
            targets.append(current)
        current = None
        plain = False

    n = len(text)
    while i < n:
        c = text[i]
        if depth == 0 and c in ";{}":
            if c == ";":
                i += 1
            break
        if c == "\n" and indented and depth == 0:
            break
        if text.startswith("/*", i):
            i = skip_block_comment(text, i, indented)
            continue
        if text.startswith("//", i):
            i = skip_line(text, i)
            continue
        if c in QUOTES:
            value, i = read_string(text, i)
            if current is None and not plain and (directive == "import" or not targets):
                current = value
            else:
                plain = plain or directive == "import"
            continue
        if at_url(text, i):
            i = skip_url(text, i)
            plain = True
            continue
        if c == "(":
            depth += 1
        elif c == ")":
            depth = max(depth - 1, 0)
        elif c == "," and depth == 0 and directive == "import":
            finish()
        elif not c.isspace() and c not in "(),":
            m = _WORD_RE.match(text, i)
            if m:
                word = m.group(0)
                if indented and directive == "import" and current is None and not plain:
                    current = word
                elif directive == "import":
                    plain = True
                i = m.end()
                continue
        i += 1
    finish()
    if directive != "import":
        targets = targets[:1]
    return targets, i


def _iter_directives(text: str, indented: bool) -> Iterator[tuple[str, list[str]]]:
    i = 0
    n = len(text)
    while i < n:
        skipped = skip_trivia(text, i, indented)
        if skipped is not None:
            i = skipped
        elif text[i] == "@":
            m = _DIRECTIVE_RE.match(text, i)
            if m:
                targets, i = _read_arguments(text, m.end(), m.group(1), indented)
                yield m.group(1), targets
            else:
                i += 1
        else:
            i += 1


def _is_stylesheet_import(directive: str, target: str) -> bool:
    if not target or "#{" in target:
        return False
    if target.startswith(_PLAIN_CSS_PREFIXES) or target.lower().endswith(".css"):
        return False
    if directive != "import" and target.startswith("sass:"):
        return False
    return True


def extract_dependencies(content: str | bytes, syntax: str = "scss") -> list[str]:
    """Extract the stylesheets a file imports.

    Args:
        content: Stylesheet source
        syntax: ``"scss"`` or ``"sass"`` (indented)

    Returns:
        Raw import targets in first-seen order, without duplicates. Plain CSS
        imports and built-in ``sass:`` modules are left out.

    Examples:
        >>> extract_dependencies('@import "base", "grid"; // @import "old";')
        ['base', 'grid']
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    targets: list[str] = []
    for directive, args in _iter_directives(content, indented=syntax == "sass"):
        for target in args:
            target = target.strip()
            if _is_stylesheet_import(directive, target) and target not in targets:
                targets.append(target)
    return targets


# --- Import resolution ---


def _glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a sass-globbing pattern; ``*`` stays in one segment, ``**/`` spans many."""
    out = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            close = pattern.find("]", i + 1)
            if close == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : close].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = close + 1
                continue
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def _normalize(path: str) -> str | None:
    """Normalize a relative identity, or None when it leaves the source root."""
    if not path or path.startswith("/"):
        return None
    normalized = posixpath.normpath(path)
    if normalized == ".." or normalized.startswith("../") or normalized == ".":
        return None
    return normalized


class ImportResolver:
    """Resolve import targets to identities among the known stylesheets.

    Args:
        known: Identity of every stylesheet below the source root
    """

    def __init__(self, known: Iterable[str]):
        self.known = frozenset(known)

    def _candidates(self, path: str) -> Iterator[str]:
        directory, basename = posixpath.split(path)
        _, ext = posixpath.splitext(basename)
        if ext.lower() in SYNTAX_MAP:
            yield path
            if not basename.startswith(PARTIAL_PREFIX):
                yield posixpath.join(directory, PARTIAL_PREFIX + basename)
            return
        for prefix in ("", PARTIAL_PREFIX):
            if prefix and basename.startswith(PARTIAL_PREFIX):
                continue
            for suffix in IMPORT_CANDIDATE_SUFFIXES:
                yield posixpath.join(directory, prefix + basename + suffix)
        for suffix in IMPORT_CANDIDATE_SUFFIXES:
            for index in INDEX_BASENAMES:
                yield posixpath.join(path, index + suffix)

    def _expand_glob(self, target: str, base_dir: str, importer: str | None) -> list[str]:
        pattern = _normalize(posixpath.join(base_dir, target))
        if pattern is None:
            return []
        has_extension = posixpath.splitext(pattern)[1].lower() in SYNTAX_MAP
        regex = _glob_to_regex(pattern)
        matches = []
        for identity in self.known:
            if identity == importer:
                continue
            subject = identity if has_extension else posixpath.splitext(identity)[0]
            if regex.match(subject):
                matches.append(identity)
        return sorted(matches)

    def resolve(self, target: str, importer: str | None = None) -> list[str]:
        """Resolve one import target.

        Args:
            target: Raw target as written in the import directive
            importer: Identity of the importing file, or None for the source root

        Returns:
            Matching identities; several for a glob import, empty when unresolved
        """
        target = target.replace("\\", "/")
        base_dir = posixpath.dirname(importer) if importer else ""

        if any(ch in GLOB_CHARACTERS for ch in target):
            return self._expand_glob(target, base_dir, importer)

        base_dirs = [base_dir] if base_dir == "" else [base_dir, ""]
        for base in base_dirs:
            path = _normalize(posixpath.join(base, target))
            if path is None:
                continue
            for candidate in self._candidates(path):
                if candidate in self.known:
                    return [candidate]
        return []


def direct_dependencies(
    source: SourceFile, resolver: ImportResolver
) -> tuple[frozenset[str], tuple[str, ...]]:
    """Resolve the direct dependencies of one source file.

    Args:
        source: File whose content is scanned
        resolver: Resolver over the known stylesheets

    Returns:
        (dependency identities, unresolved import targets)
    """
    syntax = get_syntax_from_path(source.identity) or "scss"
    dependencies: set[str] = set()
    unresolved: list[str] = []
    for target in extract_dependencies(source.content, syntax):
        resolved = resolver.resolve(target, source.identity)
        if not resolved:
            unresolved.append(target)
            continue
        for identity in resolved:
            if identity == source.identity:
                logger.warning(f"{source.identity} imports itself; ignoring the import")
                continue
            dependencies.add(identity)
    return frozenset(dependencies), tuple(unresolved)


# --- Graph ---


class DependencyGraph:
    """Directed graph over identities; edge A -> B means A's output depends on B."""

    def __init__(self):
        self._edges: dict[str, set[str]] = {}

    def add_node(self, identity: str) -> None:
        self._edges.setdefault(identity, set())

    def add_edge(self, source: str, target: str) -> None:
        if source == target:
            raise ValueError(f"Self-dependency rejected: {source}")
        self.add_node(source)
        self.add_node(target)
        self._edges[source].add(target)

    def dependencies_of(self, identity: str) -> list[str]:
        return sorted(self._edges.get(identity, ()))

    def nodes(self) -> list[str]:
        return sorted(self._edges)

    def __contains__(self, identity: str) -> bool:
        return identity in self._edges

    def __len__(self) -> int:
        return len(self._edges)


def transitive_closure(identity: str, graph: DependencyGraph) -> ClosureResult:
    """Collect everything ``identity`` depends on, directly or not.

    Depth-first walk tracking node state: 0 = unvisited, 1 = on the current
    path, 2 = completed. An edge into a state-1 node closes a cycle; an edge
    into a state-2 node is a shared dependency (diamond) and is legal.

    Args:
        identity: Start node
        graph: Dependency graph

    Returns:
        ClosureResult; the start node is never part of its own closure
    """
    state: dict[str, int] = {}
    path: list[str] = []
    reached: set[str] = set()
    cycle: tuple[str, ...] = ()

    state[identity] = 1
    path.append(identity)
    stack = [(identity, iter(graph.dependencies_of(identity)))]
    while stack:
        node, deps = stack[-1]
        dep = next(deps, None)
        if dep is None:
            stack.pop()
            path.pop()
            state[node] = 2
            continue
        dep_state = state.get(dep, 0)
        if dep_state == 1:
            if not cycle:
                cycle = tuple(path[path.index(dep) :]) + (dep,)
        elif dep_state == 0:
            reached.add(dep)
            state[dep] = 1
            path.append(dep)
            stack.append((dep, iter(graph.dependencies_of(dep))))

    reached.discard(identity)
    return ClosureResult(identities=frozenset(reached), cycle_detected=bool(cycle), cycle=cycle)
