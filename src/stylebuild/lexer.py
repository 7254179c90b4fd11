"""Token-skipping primitives shared by the import scanner and the asset URL rewriter.

Each helper takes the full text and an index and returns the index just past
the construct. Nothing here allocates a token stream; callers walk the text
and jump over comments, string literals and unquoted ``url()`` tokens.
"""

import re

QUOTES = "\"'"
IDENT_CHAR_RE = re.compile(r"[\w-]")
_URL_RE = re.compile(r"url\(\s*", re.IGNORECASE)


def skip_line(text: str, i: int) -> int:
    """Index of the newline ending the line at ``i`` (or end of text)."""
    end = text.find("\n", i)
    return len(text) if end == -1 else end


def line_indent(text: str, i: int) -> int:
    start = text.rfind("\n", 0, i) + 1
    line = text[start : skip_line(text, start)]
    return len(line) - len(line.lstrip(" \t"))


def skip_block_comment(text: str, i: int, indented: bool = False) -> int:
    """Return the index just past the ``/*`` comment starting at ``i``."""
    end = text.find("*/", i + 2)
    if not indented:
        return len(text) if end == -1 else end + 2

    # Indented syntax: the comment may be left open and runs over deeper-indented lines
    line_end = skip_line(text, i)
    if end != -1 and end < line_end:
        return end + 2
    base = line_indent(text, i)
    pos = line_end
    while pos < len(text):
        next_start = pos + 1
        next_end = skip_line(text, next_start)
        line = text[next_start:next_end]
        if line.strip() and len(line) - len(line.lstrip(" \t")) <= base:
            break
        close = text.find("*/", next_start, next_end)
        if close != -1:
            return close + 2
        pos = next_end
    return pos


def read_string(text: str, i: int) -> tuple[str, int]:
    """Read the quoted string starting at ``i``.

    Returns:
        (unescaped value, index after the closing quote). An unterminated
        string stops at the end of its line.
    """
    quote = text[i]
    buf = []
    j = i + 1
    while j < len(text):
        c = text[j]
        if c == "\\" and j + 1 < len(text):
            buf.append(text[j + 1])
            j += 2
            continue
        if c == quote:
            return "".join(buf), j + 1
        if c == "\n":
            break
        buf.append(c)
        j += 1
    return "".join(buf), j


def at_url(text: str, i: int) -> bool:
    """True when a ``url(`` token (not part of a longer identifier) starts at ``i``."""
    if not _URL_RE.match(text, i):
        return False
    return i == 0 or not IDENT_CHAR_RE.match(text[i - 1])


def skip_url(text: str, i: int) -> int:
    """Skip an unquoted ``url(...)`` token; for a quoted one stop at the quote."""
    j = _URL_RE.match(text, i).end()
    if j < len(text) and text[j] in QUOTES:
        return j
    close = text.find(")", j)
    newline = text.find("\n", j)
    if close == -1 or (newline != -1 and newline < close):
        return j
    return close + 1


def skip_trivia(text: str, i: int, indented: bool = False) -> int | None:
    """Jump over a comment, string or unquoted url at ``i``.

    Returns:
        Index after the construct, or None when ``i`` starts none of them
    """
    if text.startswith("/*", i):
        return skip_block_comment(text, i, indented)
    if text.startswith("//", i):
        return skip_line(text, i)
    if text[i] in QUOTES:
        return read_string(text, i)[1]
    if text[i] in "uU" and at_url(text, i):
        return skip_url(text, i)
    return None
