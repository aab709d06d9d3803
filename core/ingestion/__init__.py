"""Ingestion module for repository content.

This module pulls a repository's file tree and file bodies from a
rate-limited remote API, filters and classifies the paths, checks the
result against a token budget, and packs formatted file contents into
budget-respecting chunks for downstream analysis.

Example:
    >>> from core.ingestion import IngestionPipeline, IngestionConfig
    >>> pipeline = IngestionPipeline(source, IngestionConfig(concurrency=8))
    >>> report = await pipeline.ingest("repo-id", ref="main")
    >>> if report.failure:
    ...     print(report.failure.message)
    >>> for chunk in report.result.chunks:
    ...     analyze(chunk.concatenated_text)
"""

from .batch import BatchFetcher
from .budget import (
    CHARS_PER_TOKEN,
    TOKEN_LIMIT,
    budget_failure,
    estimate_budget,
    estimate_tokens,
    format_token_count,
    oversized_message,
)
from .cancellation import CancellationToken
from .chunking import CHUNK_SEPARATOR, ChunkPlanner, plan_chunks
from .errors import (
    BatchCancelledError,
    IngestionPipelineError,
    OperationCancelledError,
    PathTypeMismatchError,
    RemoteAPIError,
)
from .formatter import ContentFormatter, format_file
from .indexer import (
    BINARY_EXTENSIONS,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_PATH_EXCLUSIONS,
    IndexerOptions,
    TreeIndexer,
    index_tree,
)
from .languages import detect_language, get_extension
from .models import (
    BlobContent,
    BudgetExceeded,
    Chunk,
    ContentEncoding,
    EntryKind,
    FetchedFileContent,
    FileFetchFailure,
    FormattedFile,
    IndexedFile,
    IndexResult,
    IndexStats,
    IngestionReport,
    IngestionResult,
    IngestionStatus,
    RateLimitStatus,
    RemoteTree,
    RemoteTreeEntry,
    StoredFile,
    TokenBudgetResult,
)
from .pipeline import IngestionConfig, IngestionPipeline, ProgressCallback
from .retry import (
    RateLimitedFetcher,
    RetryOptions,
    compute_backoff_delay,
    is_rate_limit_error,
    with_retry,
)
from .sources import RemoteContentSource
from .storage import FileStore, InMemoryFileStore

__all__ = [
    # Main pipeline
    "IngestionPipeline",
    "IngestionConfig",
    "ProgressCallback",
    # Models
    "RemoteTreeEntry",
    "RemoteTree",
    "EntryKind",
    "IndexedFile",
    "IndexStats",
    "IndexResult",
    "TokenBudgetResult",
    "BudgetExceeded",
    "BlobContent",
    "FetchedFileContent",
    "ContentEncoding",
    "FileFetchFailure",
    "FormattedFile",
    "Chunk",
    "IngestionResult",
    "IngestionReport",
    "IngestionStatus",
    "RateLimitStatus",
    "StoredFile",
    # Indexing
    "TreeIndexer",
    "IndexerOptions",
    "index_tree",
    "detect_language",
    "get_extension",
    "DEFAULT_PATH_EXCLUSIONS",
    "BINARY_EXTENSIONS",
    "DEFAULT_MAX_FILE_SIZE",
    # Budget
    "TOKEN_LIMIT",
    "CHARS_PER_TOKEN",
    "estimate_tokens",
    "estimate_budget",
    "budget_failure",
    "format_token_count",
    "oversized_message",
    # Fetching
    "RateLimitedFetcher",
    "RetryOptions",
    "with_retry",
    "compute_backoff_delay",
    "is_rate_limit_error",
    "BatchFetcher",
    "CancellationToken",
    # Formatting and chunking
    "ContentFormatter",
    "format_file",
    "ChunkPlanner",
    "plan_chunks",
    "CHUNK_SEPARATOR",
    # Contracts
    "RemoteContentSource",
    "FileStore",
    "InMemoryFileStore",
    # Errors
    "IngestionPipelineError",
    "RemoteAPIError",
    "PathTypeMismatchError",
    "OperationCancelledError",
    "BatchCancelledError",
]
