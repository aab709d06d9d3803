"""Main ingestion pipeline orchestrator.

This module provides the IngestionPipeline class which orchestrates a full
repository content ingestion: tree listing, indexing, the token budget
check, optional persistence of the index, concurrent content fetching and
chunk planning. The budget check is a hard stop before any file body is
fetched.
"""

import time
from collections.abc import Callable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from core.config import Settings

from .batch import DEFAULT_CONCURRENCY, BatchFetcher
from .budget import TOKEN_LIMIT, budget_failure, estimate_budget
from .cancellation import CancellationToken
from .chunking import ChunkPlanner
from .indexer import IndexerOptions, TreeIndexer
from .models import (
    FetchedFileContent,
    FileFetchFailure,
    IndexedFile,
    IngestionReport,
    IngestionStatus,
    RemoteTree,
)
from .retry import RateLimitedFetcher, RetryOptions
from .sources import RemoteContentSource
from .storage import FileStore

logger = structlog.get_logger(__name__)


# Type for progress callback: (stage, completed, total)
ProgressCallback = Callable[[str, int, int], None]


class IngestionConfig(BaseModel):
    """Configuration for repository ingestion.

    Attributes:
        indexer: Tree indexing options.
        token_limit: Maximum estimated tokens for the whole repository.
        chunk_budget: Maximum tokens per chunk, None to use token_limit.
        concurrency: Concurrent file fetches per window.
        retry: Rate-limit retry options for every remote call.
        fetch_by_hash: Fetch bodies by content hash instead of by path.
    """

    model_config = ConfigDict(frozen=True)

    indexer: IndexerOptions = Field(default_factory=IndexerOptions, description="Indexer options")
    token_limit: int = Field(TOKEN_LIMIT, ge=1, description="Repository token limit")
    chunk_budget: int | None = Field(None, ge=1, description="Per-chunk token budget")
    concurrency: int = Field(DEFAULT_CONCURRENCY, ge=1, description="Fetch concurrency")
    retry: RetryOptions = Field(default_factory=RetryOptions, description="Retry options")
    fetch_by_hash: bool = Field(False, description="Fetch bodies by content hash")

    @property
    def effective_chunk_budget(self) -> int:
        """Per-chunk budget, falling back to the repository limit."""
        return self.chunk_budget or self.token_limit

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestionConfig":
        """Build ingestion configuration from application settings.

        Args:
            settings: Application settings.

        Returns:
            IngestionConfig mirroring the ``ingestion_*`` settings.
        """
        return cls(
            indexer=IndexerOptions(
                path_exclusion_patterns=tuple(settings.ingestion_exclude_patterns),
                binary_extensions=tuple(settings.ingestion_binary_extensions),
                include_hidden=settings.ingestion_include_hidden,
                max_file_size=settings.ingestion_max_file_size,
            ),
            token_limit=settings.ingestion_token_limit,
            chunk_budget=settings.ingestion_chunk_budget,
            concurrency=settings.ingestion_concurrency,
            retry=RetryOptions(
                max_retries=settings.ingestion_max_retries,
                base_delay_ms=settings.ingestion_base_delay_ms,
            ),
            fetch_by_hash=settings.ingestion_fetch_by_hash,
        )


class IngestionPipeline:
    """Orchestrates repository content ingestion.

    Attributes:
        source: Remote content source bound to one repository.
        config: Ingestion configuration.
        store: Optional store for indexed file snapshots.
        indexer: Tree indexer instance.
        planner: Chunk planner instance.
    """

    def __init__(
        self,
        source: RemoteContentSource,
        config: IngestionConfig | None = None,
        store: FileStore | None = None,
    ) -> None:
        """Initialize the IngestionPipeline.

        Args:
            source: Remote content source for the repository.
            config: Ingestion configuration. Uses defaults if not provided.
            store: Optional FileStore to upsert indexed files into.
        """
        self.source = source
        self.config = config or IngestionConfig()
        self.store = store
        self.indexer = TreeIndexer(self.config.indexer)
        self.planner = ChunkPlanner(self.config.effective_chunk_budget)
        self._fetcher = RateLimitedFetcher(self.config.retry)
        self._batch = BatchFetcher(self.config.concurrency, fetcher=self._fetcher)

        logger.debug("IngestionPipeline initialized", config=self.config.model_dump())

    async def ingest(
        self,
        repository_id: str,
        ref: str = "HEAD",
        cancel: CancellationToken | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> IngestionReport:
        """Ingest a repository at a ref.

        Args:
            repository_id: Identifier used for persistence and logging.
            ref: Git ref (branch, tag, or SHA).
            cancel: Optional cancellation token.
            progress_callback: Optional callback for progress updates,
                called with (stage, completed, total).

        Returns:
            IngestionReport. A repository over the token limit yields a
            failed report with ``failure`` set and nothing fetched.

        Raises:
            OperationCancelledError: If the token fires.
            PathTypeMismatchError: If the remote reports a path type mismatch.
            Exception: Transport errors from the tree listing, after retries.
        """
        start_time = time.time()
        log = logger.bind(repository_id=repository_id, ref=ref)

        log.info("Starting ingestion")
        tree: RemoteTree = await self._fetcher.run(
            lambda: self.source.get_tree(ref, cancel), cancel
        )
        if cancel is not None:
            cancel.raise_if_cancelled()
        if tree.truncated:
            log.warning("tree_truncated", entries=len(tree.entries))

        index = self.indexer.index(tree.entries)
        stats = index.stats
        log.info(
            "Indexed tree",
            total=stats.total_files,
            included=stats.included_files,
            excluded_by_path=stats.excluded_by_path,
            excluded_by_extension=stats.excluded_by_extension,
            excluded_by_size=stats.excluded_by_size,
        )
        if progress_callback:
            progress_callback("index", stats.included_files, stats.total_files)

        budget = estimate_budget(index.files, self.config.token_limit)
        failure = budget_failure(budget)
        if failure is not None:
            log.warning("token_limit_exceeded", message=failure.message)
            return IngestionReport(
                repository_id=repository_id,
                ref=ref,
                commit_sha=tree.root_hash,
                status=IngestionStatus.FAILED,
                stats=stats,
                budget=budget,
                truncated=tree.truncated,
                failure=failure,
                duration_ms=self._elapsed_ms(start_time),
            )

        if cancel is not None:
            cancel.raise_if_cancelled()

        stored_count = 0
        if self.store is not None:
            stored_count = await self.store.upsert_indexed_files(repository_id, index.files)
            log.info("Stored indexed files", stored=stored_count)

        fetched = await self._fetch_contents(index.files, tree, ref, cancel, progress_callback)

        contents: list[FetchedFileContent] = []
        failures: list[FileFetchFailure] = []
        for file in index.files:
            outcome = fetched.get(file.file_path)
            if isinstance(outcome, Exception):
                failures.append(
                    FileFetchFailure(
                        path=file.file_path,
                        error_type=type(outcome).__name__,
                        message=str(outcome),
                    )
                )
            elif outcome is not None:
                contents.append(outcome)

        languages = {file.file_path: file.language for file in index.files}
        result = self.planner.plan(contents, languages)

        duration_ms = self._elapsed_ms(start_time)
        log.info(
            "Ingestion complete",
            chunks=len(result.chunks),
            files=result.total_files_included,
            skipped=len(result.skipped_files),
            failed=len(failures),
            duration_ms=duration_ms,
        )

        return IngestionReport(
            repository_id=repository_id,
            ref=ref,
            commit_sha=tree.root_hash,
            status=IngestionStatus.INGESTED,
            stats=stats,
            budget=budget,
            truncated=tree.truncated,
            stored_count=stored_count,
            failed_files=failures,
            result=result,
            duration_ms=duration_ms,
        )

    async def _fetch_contents(
        self,
        files: list[IndexedFile],
        tree: RemoteTree,
        ref: str,
        cancel: CancellationToken | None,
        progress_callback: ProgressCallback | None,
    ) -> dict[str, FetchedFileContent | Exception]:
        """Fetch bodies for the indexed files, keyed by path."""
        hashes = {entry.path: entry.content_hash for entry in tree.entries}

        async def fetch_by_path(path: str) -> FetchedFileContent:
            return await self.source.get_file_content(path, ref, cancel)

        async def fetch_by_hash(path: str) -> FetchedFileContent:
            content_hash = hashes[path]
            blob = await self.source.get_blob_content(content_hash, cancel)
            return FetchedFileContent(
                path=path,
                content_hash=content_hash,
                body=blob.body,
                encoding=blob.encoding,
                size_bytes=blob.size_bytes,
            )

        def report(completed: int, total: int) -> None:
            if progress_callback:
                progress_callback("fetch", completed, total)

        return await self._batch.fetch_all(
            [file.file_path for file in files],
            fetch_by_hash if self.config.fetch_by_hash else fetch_by_path,
            cancel=cancel,
            progress=report,
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.time() - start_time) * 1000)
