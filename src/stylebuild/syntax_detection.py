"""Stylesheet syntax and partial detection utilities."""

import posixpath

from stylebuild.constants import PARTIAL_PREFIX, SYNTAX_MAP


def get_syntax_from_path(path: str) -> str | None:
    """Determines the stylesheet syntax from a path based on SYNTAX_MAP.

    Args:
        path: File path or identity

    Returns:
        ``"scss"`` or ``"sass"`` if the file is a stylesheet, None otherwise

    Examples:
        >>> get_syntax_from_path("layout/_grid.scss")
        'scss'
        >>> get_syntax_from_path("README.md") is None
        True
    """
    _, ext = posixpath.splitext(str(path))
    return SYNTAX_MAP.get(ext.lower())


def is_partial(path: str) -> bool:
    """Partials are imported by other stylesheets and never compiled on their own."""
    return posixpath.basename(str(path).replace("\\", "/")).startswith(PARTIAL_PREFIX)
