"""Tree indexing for the ingestion module.

This module filters a raw remote tree listing down to the files worth
ingesting and classifies each by language. Filtering is pure and
deterministic: path exclusions (substring match), binary extensions and a
size limit are applied in that order, and every file lands in exactly one
bucket of the resulting IndexStats.
"""

from collections.abc import Iterable

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .languages import detect_language, get_extension, get_filename
from .models import EntryKind, IndexedFile, IndexResult, IndexStats, RemoteTreeEntry

logger = structlog.get_logger(__name__)


DEFAULT_MAX_FILE_SIZE = 1024 * 1024

# Substring patterns matched case-sensitively against the full path.
DEFAULT_PATH_EXCLUSIONS: tuple[str, ...] = (
    # Package managers
    "node_modules/",
    "vendor/",
    ".pnpm/",
    # Build outputs
    "dist/",
    "build/",
    "out/",
    ".next/",
    ".nuxt/",
    ".svelte-kit/",
    ".output/",
    ".vercel/",
    # Testing/coverage
    "coverage/",
    "__pycache__/",
    ".pytest_cache/",
    ".nyc_output/",
    # Virtual environments
    ".venv/",
    "venv/",
    "env/",
    ".virtualenv/",
    # IDE/Editor
    ".idea/",
    ".vscode/",
    # Version control
    ".git/",
    # Lock files
    "package-lock.json",
    "yarn.lock",
    "bun.lockb",
    "pnpm-lock.yaml",
    "Gemfile.lock",
    "poetry.lock",
    "Cargo.lock",
    "composer.lock",
    # Generated files
    ".d.ts.map",
    ".js.map",
    ".css.map",
    "routeTree.gen.ts",
)

BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        # Images
        "png", "jpg", "jpeg", "gif", "ico", "svg", "webp", "bmp", "tiff", "avif",
        # Fonts
        "woff", "woff2", "ttf", "otf", "eot",
        # Media
        "mp3", "mp4", "wav", "avi", "mov", "webm", "ogg", "flac",
        # Archives
        "zip", "tar", "gz", "rar", "7z", "bz2", "xz",
        # Binaries
        "exe", "dll", "so", "dylib", "bin", "dmg", "msi",
        # Compiled
        "pyc", "pyo", "class", "o", "obj", "a", "lib",
        # Documents
        "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
        # Databases
        "db", "sqlite", "sqlite3",
        # Minified
        "min.js", "min.css",
    }
)  # fmt: skip


class IndexerOptions(BaseModel):
    """Options controlling tree indexing.

    Extra patterns and extensions are appended to the built-in defaults,
    never substituted for them.

    Attributes:
        path_exclusion_patterns: Additional substring patterns to exclude.
        binary_extensions: Additional extensions to treat as binary.
        include_hidden: Keep files whose leaf name starts with a dot.
        max_file_size: Largest file size in bytes that is still included.
    """

    model_config = ConfigDict(frozen=True)

    path_exclusion_patterns: tuple[str, ...] = Field(
        default=(), description="Extra substring exclusion patterns"
    )
    binary_extensions: tuple[str, ...] = Field(
        default=(), description="Extra binary extensions"
    )
    include_hidden: bool = Field(default=True, description="Include dotfiles")
    max_file_size: int = Field(
        default=DEFAULT_MAX_FILE_SIZE, ge=0, description="Max file size in bytes"
    )

    @field_validator("binary_extensions")
    @classmethod
    def _normalize_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(ext.lower().lstrip(".") for ext in value)


class TreeIndexer:
    """Filters and classifies a remote tree listing.

    Attributes:
        options: Indexer options.
    """

    def __init__(self, options: IndexerOptions | None = None) -> None:
        """Initialize the TreeIndexer.

        Args:
            options: Indexer options. Uses defaults if not provided.
        """
        self.options = options or IndexerOptions()
        self._path_patterns = DEFAULT_PATH_EXCLUSIONS + self.options.path_exclusion_patterns
        self._binary_extensions = BINARY_EXTENSIONS | frozenset(self.options.binary_extensions)

    def index(self, entries: Iterable[RemoteTreeEntry]) -> IndexResult:
        """Index a tree listing.

        Args:
            entries: Raw entries in listing order.

        Returns:
            IndexResult with included files (in listing order) and stats.
        """
        files: list[IndexedFile] = []
        total = by_path = by_extension = by_size = 0

        for entry in entries:
            if entry.kind != EntryKind.FILE:
                continue

            total += 1

            if not self.options.include_hidden and get_filename(entry.path).startswith("."):
                by_path += 1
                continue

            if self.is_excluded_by_path(entry.path):
                by_path += 1
                continue

            if self.is_excluded_by_extension(entry.path):
                by_extension += 1
                continue

            if entry.size_bytes > self.options.max_file_size:
                by_size += 1
                continue

            files.append(
                IndexedFile(
                    file_path=entry.path,
                    language=detect_language(entry.path),
                    size_bytes=entry.size_bytes,
                )
            )

        stats = IndexStats(
            total_files=total,
            included_files=len(files),
            excluded_by_path=by_path,
            excluded_by_extension=by_extension,
            excluded_by_size=by_size,
        )
        logger.debug("tree_indexed", **stats.model_dump())
        return IndexResult(files=files, stats=stats)

    def is_excluded_by_path(self, path: str) -> bool:
        """Check whether any exclusion pattern occurs in the path."""
        return any(pattern in path for pattern in self._path_patterns)

    def is_excluded_by_extension(self, path: str) -> bool:
        """Check whether the path has a binary extension."""
        extension = get_extension(path)
        return bool(extension) and extension in self._binary_extensions


def index_tree(
    entries: Iterable[RemoteTreeEntry],
    options: IndexerOptions | None = None,
) -> IndexResult:
    """Index a tree listing with the given options.

    Example:
        >>> result = index_tree(tree.entries)
        >>> print(f"Indexed {result.stats.included_files} of {result.stats.total_files}")
    """
    return TreeIndexer(options).index(entries)
