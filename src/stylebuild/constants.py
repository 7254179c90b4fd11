"""Constants shared across stylebuild modules."""

# Stylesheet extension -> syntax name understood by the compiler
SYNTAX_MAP: dict[str, str] = {
    ".scss": "scss",
    ".sass": "sass",
}

OUTPUT_EXTENSION = ".css"

# Basenames starting with this prefix are partials: imported, never compiled alone
PARTIAL_PREFIX = "_"

# Import candidates tried, in order, for an extension-less import target
IMPORT_CANDIDATE_SUFFIXES: tuple[str, ...] = (".scss", ".sass")
INDEX_BASENAMES: tuple[str, ...] = ("index", "_index")

GLOB_CHARACTERS = frozenset("*?[")

ALWAYS_IGNORE_PATTERNS: list[str] = [
    ".sass-cache/",
    ".git/",
    ".hg/",
    ".svn/",
    "node_modules/",
    "__pycache__/",
]

DEFAULT_CONFIG_FILENAME = "stylebuild.yaml"
ENV_PREFIX = "STYLEBUILD_"

HASH_CHUNK_SIZE = 4096
