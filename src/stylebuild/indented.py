"""Indented (``.sass``) syntax to SCSS conversion.

libsass converts ``.sass`` files it reads from disk itself, but any source
handed to it by an importer is parsed as SCSS. Partials served from the
build manifest are converted here first.

Line numbers are kept: every input line maps to the same output line, with
block-closing braces prefixed to the line that ends the block.
"""

import re

from stylebuild.lexer import QUOTES, at_url, read_string, skip_url

_INCLUDE_RE = re.compile(r"\+(?=[\w-])")
_OLD_PROPERTY_RE = re.compile(r":([a-zA-Z-][\w-]*)\s+(\S.*)")
_IMPORT_RE = re.compile(r"@import(?![\w-])\s*(.*)")


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _strip_line_comment(line: str) -> str:
    """Drop a trailing ``//`` comment outside strings and ``url()`` tokens."""
    i = 0
    while i < len(line):
        c = line[i]
        if c in QUOTES:
            i = read_string(line, i)[1]
            continue
        if c in "uU" and at_url(line, i):
            i = skip_url(line, i)
            continue
        if line.startswith("/*", i):
            end = line.find("*/", i + 2)
            if end == -1:
                return line
            i = end + 2
            continue
        if line.startswith("//", i):
            return line[:i].rstrip()
        i += 1
    return line


def _quote_import(target: str) -> str:
    if not target or target[0] in QUOTES or target.lower().startswith("url("):
        return target
    return f'"{target}"'


def _convert_statement(statement: str) -> str:
    if statement.startswith("="):
        return "@mixin " + statement[1:].lstrip()
    if _INCLUDE_RE.match(statement):
        return "@include " + statement[1:]
    m = _OLD_PROPERTY_RE.fullmatch(statement)
    if m:
        return f"{m.group(1)}: {m.group(2)}"
    m = _IMPORT_RE.fullmatch(statement)
    if m:
        return "@import " + ", ".join(_quote_import(t.strip()) for t in m.group(1).split(","))
    return statement


def sass_to_scss(text: str) -> str:
    """Rewrite indented-syntax source as SCSS.

    Args:
        text: ``.sass`` source

    Returns:
        SCSS source with the same number of lines (plus one for trailing braces)

    Examples:
        >>> sass_to_scss(".a\\n  width: 1px\\n")
        '.a {\\n  width: 1px;\\n}\\n'
    """
    lines = text.splitlines()
    out = [""] * len(lines)
    code: list[int] = []

    i = 0
    while i < len(lines):
        stripped = lines[i].strip()
        if not stripped.startswith(("//", "/*")):
            if stripped:
                code.append(i)
            i += 1
            continue
        # A comment runs over every following line indented deeper than its first
        base = _indent(lines[i])
        end = i + 1
        while end < len(lines) and (not lines[end].strip() or _indent(lines[end]) > base):
            end += 1
        if stripped.startswith("/*"):
            body = [line.rstrip() for line in lines[i:end]]
            if not any("*/" in line for line in body):
                last = max(k for k, line in enumerate(body) if line.strip())
                body[last] += " */"
            out[i:end] = body
        i = end

    open_blocks: list[int] = []
    for position, index in enumerate(code):
        line = lines[index]
        indent = _indent(line)
        closing = ""
        while open_blocks and open_blocks[-1] >= indent:
            open_blocks.pop()
            closing += "} "
        statement = _convert_statement(_strip_line_comment(line.strip()))
        next_indent = _indent(lines[code[position + 1]]) if position + 1 < len(code) else -1
        if next_indent > indent:
            open_blocks.append(indent)
            statement += " {"
        elif not statement.endswith((",", ";")):
            statement += ";"
        out[index] = line[:indent] + closing + statement

    if open_blocks:
        out.append("}" * len(open_blocks))
    return "\n".join(out) + "\n"
