"""Language detection for repository paths.

Detection is a pure function of the path: an exact filename table is
consulted first, then an ordered list of compound-suffix rules, then a
static extension table. Nothing here touches the filesystem or network.
"""

from types import MappingProxyType

# Exact leaf-name matches (case-sensitive). Checked before extensions.
FILENAME_TO_LANGUAGE: MappingProxyType[str, str] = MappingProxyType(
    {
        "Dockerfile": "dockerfile",
        "Containerfile": "dockerfile",
        "Makefile": "makefile",
        "GNUmakefile": "makefile",
        "Rakefile": "ruby",
        "Gemfile": "ruby",
        "Brewfile": "ruby",
        "Vagrantfile": "ruby",
        "Podfile": "ruby",
        "CMakeLists.txt": "cmake",
        "Justfile": "just",
        "justfile": "just",
        "Procfile": "procfile",
        ".gitignore": "gitignore",
        ".gitattributes": "gitattributes",
        ".dockerignore": "gitignore",
        ".editorconfig": "editorconfig",
        ".env": "dotenv",
        ".prettierrc": "json",
        ".eslintrc": "json",
        ".babelrc": "json",
        "tsconfig.json": "json",
        "package.json": "json",
    }
)

# Extensions are stored lower-case and without the leading dot.
EXTENSION_TO_LANGUAGE: MappingProxyType[str, str] = MappingProxyType(
    {
        # TypeScript
        "ts": "typescript",
        "tsx": "typescript",
        "mts": "typescript",
        "cts": "typescript",
        # JavaScript
        "js": "javascript",
        "jsx": "javascript",
        "mjs": "javascript",
        "cjs": "javascript",
        # Python
        "py": "python",
        "pyw": "python",
        "pyi": "python",
        # Ruby
        "rb": "ruby",
        "rake": "ruby",
        "gemspec": "ruby",
        # Systems languages
        "go": "go",
        "rs": "rust",
        "c": "c",
        "h": "c",
        "cpp": "cpp",
        "cc": "cpp",
        "cxx": "cpp",
        "hpp": "cpp",
        "hh": "cpp",
        "hxx": "cpp",
        "zig": "zig",
        "v": "v",
        "nim": "nim",
        "cr": "crystal",
        # JVM
        "java": "java",
        "kt": "kotlin",
        "kts": "kotlin",
        "scala": "scala",
        "sc": "scala",
        "clj": "clojure",
        "cljs": "clojure",
        "cljc": "clojure",
        # .NET
        "cs": "csharp",
        "fs": "fsharp",
        "fsi": "fsharp",
        "fsx": "fsharp",
        # Other general purpose
        "swift": "swift",
        "php": "php",
        "lua": "lua",
        "pl": "perl",
        "pm": "perl",
        "r": "r",
        "ex": "elixir",
        "exs": "elixir",
        "erl": "erlang",
        "hrl": "erlang",
        "hs": "haskell",
        "lhs": "haskell",
        "ml": "ocaml",
        "mli": "ocaml",
        "dart": "dart",
        "jl": "julia",
        # Query and schema languages
        "sql": "sql",
        "graphql": "graphql",
        "gql": "graphql",
        "proto": "protobuf",
        # Markup and styles
        "md": "markdown",
        "mdx": "markdown",
        "html": "html",
        "htm": "html",
        "css": "css",
        "scss": "scss",
        "sass": "scss",
        "less": "less",
        "vue": "vue",
        "svelte": "svelte",
        "xml": "xml",
        "xsl": "xml",
        "xslt": "xml",
        # Data and config
        "json": "json",
        "jsonc": "json",
        "yaml": "yaml",
        "yml": "yaml",
        "toml": "toml",
        "ini": "ini",
        "cfg": "ini",
        "conf": "config",
        "env": "dotenv",
        "tf": "terraform",
        "tfvars": "terraform",
        "nix": "nix",
        "dockerfile": "dockerfile",
        # Shell
        "sh": "shell",
        "bash": "shell",
        "zsh": "shell",
        "fish": "shell",
        # Compound buckets produced by SUFFIX_OVERRIDES
        "min.js": "javascript",
        "js.map": "javascript",
        "min.css": "css",
        "css.map": "css",
        "d.ts.map": "typescript",
    }
)

# Ordered (suffix, extension) rules evaluated before generic extension
# extraction. Longer suffixes must precede any suffix they end with.
SUFFIX_OVERRIDES: tuple[tuple[str, str], ...] = (
    (".d.ts.map", "d.ts.map"),
    (".js.map", "js.map"),
    (".css.map", "css.map"),
    (".min.js", "min.js"),
    (".min.css", "min.css"),
    (".d.ts", "ts"),
)


def get_filename(path: str) -> str:
    """Return the leaf name of a slash-separated path."""
    return path.rsplit("/", 1)[-1]


def get_extension(path: str) -> str:
    """Extract the lower-cased extension of a path, without the leading dot.

    Hidden files without a further dot (``.gitignore``) have no extension.
    Compound suffixes such as ``.min.js`` or ``.d.ts`` resolve through
    SUFFIX_OVERRIDES.

    Args:
        path: Slash-separated path relative to the repository root.

    Returns:
        Extension string, or an empty string if there is none.
    """
    filename = get_filename(path)

    if filename.startswith(".") and "." not in filename[1:]:
        return ""

    lower = filename.lower()
    for suffix, extension in SUFFIX_OVERRIDES:
        if lower.endswith(suffix):
            return extension

    last_dot = lower.rfind(".")
    if last_dot <= 0:
        return ""
    return lower[last_dot + 1 :]


def detect_language(path: str) -> str | None:
    """Detect the language of a file from its path.

    Args:
        path: Slash-separated path relative to the repository root.

    Returns:
        Language identifier, or None if the path is not recognised.
    """
    filename = get_filename(path)
    if filename in FILENAME_TO_LANGUAGE:
        return FILENAME_TO_LANGUAGE[filename]

    extension = get_extension(path)
    if extension:
        return EXTENSION_TO_LANGUAGE.get(extension)
    return None
