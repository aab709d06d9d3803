"""Tests for the ingestion pipeline and file storage."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.config import Settings
from core.ingestion import (
    FileStore,
    IndexerOptions,
    IngestionConfig,
    IngestionPipeline,
    IngestionStatus,
    InMemoryFileStore,
    RemoteContentSource,
    RetryOptions,
)
from core.ingestion.errors import OperationCancelledError, PathTypeMismatchError, RemoteAPIError
from core.ingestion.models import IndexedFile

from .conftest import FakeContentSource, rate_limited

FAST_RETRY = RetryOptions(max_retries=3, base_delay_ms=1)


def fast_config(**kwargs) -> IngestionConfig:
    return IngestionConfig(retry=FAST_RETRY, **kwargs)


class CancelDuringTree(FakeContentSource):
    """Source whose tree listing completes just as the run is cancelled."""

    async def get_tree(self, ref, cancel=None):
        tree = await super().get_tree(ref, cancel)
        cancel.cancel()
        return tree


# =============================================================================
# IngestionConfig Tests
# =============================================================================


class TestIngestionConfig:
    """Tests for IngestionConfig."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = IngestionConfig()

        assert config.token_limit == 600_000
        assert config.chunk_budget is None
        assert config.effective_chunk_budget == 600_000
        assert config.concurrency == 5
        assert config.fetch_by_hash is False
        assert config.indexer.include_hidden is True

    def test_chunk_budget_override(self) -> None:
        """Test that an explicit chunk budget wins."""
        assert IngestionConfig(chunk_budget=1000).effective_chunk_budget == 1000

    def test_from_settings(self) -> None:
        """Test building config from settings."""
        settings = Settings(
            _env_file=None,
            ingestion_token_limit=1000,
            ingestion_chunk_budget=200,
            ingestion_concurrency=2,
            ingestion_max_retries=1,
            ingestion_base_delay_ms=5,
            ingestion_max_file_size=4096,
            ingestion_include_hidden=False,
            ingestion_exclude_patterns="fixtures/,generated/",
            ingestion_binary_extensions=".csv",
            ingestion_fetch_by_hash=True,
        )

        config = IngestionConfig.from_settings(settings)

        assert config.token_limit == 1000
        assert config.effective_chunk_budget == 200
        assert config.concurrency == 2
        assert config.retry.max_retries == 1
        assert config.retry.base_delay_ms == 5
        assert config.indexer.max_file_size == 4096
        assert config.indexer.include_hidden is False
        assert config.indexer.path_exclusion_patterns == ("fixtures/", "generated/")
        assert config.indexer.binary_extensions == ("csv",)
        assert config.fetch_by_hash is True


# =============================================================================
# IngestionPipeline Tests
# =============================================================================


class TestIngestionPipeline:
    """Tests for IngestionPipeline."""

    def test_fake_source_satisfies_contract(self, fake_source) -> None:
        """Test that the test double implements the remote contract."""
        assert isinstance(fake_source, RemoteContentSource)

    @pytest.mark.asyncio
    async def test_ingest_success(self, fake_source) -> None:
        """Test a full successful run."""
        report = await IngestionPipeline(fake_source, fast_config()).ingest("repo-1", ref="main")

        assert report.status == IngestionStatus.INGESTED
        assert report.succeeded
        assert report.repository_id == "repo-1"
        assert report.ref == "main"
        assert report.commit_sha == "commit-main"
        assert report.failure is None
        assert report.failed_files == []
        assert report.stats.total_files == 3
        assert report.stats.included_files == 3
        assert report.budget is not None and not report.budget.exceeds_limit

        result = report.result
        assert result is not None
        assert len(result.chunks) == 1
        assert [f.path for f in result.chunks[0].files] == [
            "src/main.py",
            "src/util.ts",
            "README.md",
        ]
        assert result.chunks[0].files[0].language == "python"
        assert "## File: src/util.ts\nLanguage: typescript\n" in result.chunks[0].concatenated_text

    @pytest.mark.asyncio
    async def test_excluded_files_never_fetched(self) -> None:
        """Test that only indexed files are fetched."""
        source = FakeContentSource(
            files={
                "src/a.py": "a = 1\n",
                "node_modules/lib/index.js": "module.exports = {}\n",
                "img/logo.png": "PNG",
            }
        )

        report = await IngestionPipeline(source, fast_config()).ingest("repo")

        assert source.content_calls == ["src/a.py"]
        assert report.stats.excluded_by_path == 1
        assert report.stats.excluded_by_extension == 1

    @pytest.mark.asyncio
    async def test_budget_exceeded_stops_before_fetch(self) -> None:
        """Test that an oversized repository fails with no fetch and no storage."""
        source = FakeContentSource(
            files={"a.py": "x", "b.py": "y"},
            sizes={"a.py": 2_000_000, "b.py": 1_000_000},
        )
        store = MagicMock()
        store.upsert_indexed_files = AsyncMock(return_value=2)

        report = await IngestionPipeline(source, fast_config(), store=store).ingest("big")

        assert report.status == IngestionStatus.FAILED
        assert not report.succeeded
        assert report.result is None
        assert report.failure is not None
        assert report.failure.estimated_tokens == 750_000
        assert report.failure.message == "Repository too large: 750k tokens exceeds 600k limit"
        assert source.content_calls == []
        assert source.blob_calls == []
        store.upsert_indexed_files.assert_not_called()

    @pytest.mark.asyncio
    async def test_budget_exactly_at_limit_proceeds(self) -> None:
        """Test that a repository at the limit is ingested."""
        source = FakeContentSource(files={"a.py": "x" * 40})

        report = await IngestionPipeline(source, fast_config(token_limit=10)).ingest("repo")

        assert report.status == IngestionStatus.INGESTED
        assert report.budget.estimated_tokens == 10

    @pytest.mark.asyncio
    async def test_fetch_failure_recorded(self, fake_source) -> None:
        """Test that a per-file failure is reported and siblings survive."""
        fake_source.failures["src/util.ts"] = [RemoteAPIError("Not Found", status_code=404)]

        report = await IngestionPipeline(fake_source, fast_config()).ingest("repo")

        assert report.status == IngestionStatus.INGESTED
        assert len(report.failed_files) == 1
        failure = report.failed_files[0]
        assert failure.path == "src/util.ts"
        assert failure.error_type == "RemoteAPIError"
        assert failure.message == "Not Found"
        assert [f.path for f in report.result.chunks[0].files] == ["src/main.py", "README.md"]

    @pytest.mark.asyncio
    async def test_rate_limited_file_retried(self, fake_source) -> None:
        """Test that rate-limited fetches are retried transparently."""
        fake_source.failures["README.md"] = [rate_limited(429), rate_limited(403)]

        report = await IngestionPipeline(fake_source, fast_config()).ingest("repo")

        assert report.failed_files == []
        assert fake_source.content_calls.count("README.md") == 3

    @pytest.mark.asyncio
    async def test_rate_limited_tree_retried(self, fake_source) -> None:
        """Test that the tree listing goes through the retry layer."""
        fake_source.failures["__tree__"] = [rate_limited()]

        report = await IngestionPipeline(fake_source, fast_config()).ingest("repo")

        assert fake_source.tree_calls == 2
        assert report.succeeded

    @pytest.mark.asyncio
    async def test_tree_error_propagates(self, fake_source) -> None:
        """Test that a non-retryable tree error is raised."""
        fake_source.failures["__tree__"] = [RemoteAPIError("Bad credentials", status_code=401)]

        with pytest.raises(RemoteAPIError, match="Bad credentials"):
            await IngestionPipeline(fake_source, fast_config()).ingest("repo")

    @pytest.mark.asyncio
    async def test_path_mismatch_recorded_per_file(self, fake_source) -> None:
        """Test that a file turning out to be a directory is a per-file failure."""
        fake_source.failures["README.md"] = [PathTypeMismatchError("README.md", "file")]

        report = await IngestionPipeline(fake_source, fast_config()).ingest("repo")

        assert report.failed_files[0].error_type == "PathTypeMismatchError"
        assert report.failed_files[0].message == 'Path "README.md" is not a file'

    @pytest.mark.asyncio
    async def test_fetch_by_hash(self, fake_source) -> None:
        """Test fetching bodies by content hash."""
        config = fast_config(fetch_by_hash=True)

        report = await IngestionPipeline(fake_source, config).ingest("repo")

        assert fake_source.content_calls == []
        assert sorted(fake_source.blob_calls) == [
            "sha-README.md",
            "sha-src/main.py",
            "sha-src/util.ts",
        ]
        first = report.result.chunks[0].files[0]
        assert first.path == "src/main.py"
        assert first.raw_body == "print('hello')\n"

    @pytest.mark.asyncio
    async def test_store_receives_indexed_files(self, fake_source) -> None:
        """Test that indexed files are persisted before fetching."""
        store = InMemoryFileStore()

        report = await IngestionPipeline(fake_source, fast_config(), store=store).ingest("repo-9")

        assert report.stored_count == 3
        assert [row.file_path for row in store.list_files("repo-9")] == [
            "README.md",
            "src/main.py",
            "src/util.ts",
        ]

    @pytest.mark.asyncio
    async def test_truncated_tree_reported(self) -> None:
        """Test that a truncated listing is flagged but still ingested."""
        source = FakeContentSource(files={"a.py": "a"}, truncated=True)

        report = await IngestionPipeline(source, fast_config()).ingest("repo")

        assert report.truncated is True
        assert report.succeeded

    @pytest.mark.asyncio
    async def test_chunk_budget_splits_output(self) -> None:
        """Test that a small chunk budget produces several chunks."""
        # Each file renders to 87 tokens, so two fit per 200-token chunk.
        source = FakeContentSource(files={f"f{i}.py": "z" * 300 for i in range(4)})

        report = await IngestionPipeline(source, fast_config(chunk_budget=200)).ingest("repo")

        assert [len(c.files) for c in report.result.chunks] == [2, 2]
        assert report.result.exceeds_budget is True

    @pytest.mark.asyncio
    async def test_oversized_file_skipped(self) -> None:
        """Test that a file larger than the chunk budget is skipped."""
        source = FakeContentSource(files={"small.py": "s", "large.py": "L" * 4000})

        report = await IngestionPipeline(source, fast_config(chunk_budget=500)).ingest("repo")

        assert report.result.skipped_files == ["large.py"]
        assert report.result.total_files_included == 1

    @pytest.mark.asyncio
    async def test_progress_callback(self, fake_source) -> None:
        """Test progress reporting for index and fetch stages."""
        updates: list[tuple[str, int, int]] = []

        await IngestionPipeline(fake_source, fast_config(concurrency=2)).ingest(
            "repo", progress_callback=lambda stage, done, total: updates.append(
                (stage, done, total)
            )
        )

        assert updates == [("index", 3, 3), ("fetch", 2, 3), ("fetch", 3, 3)]

    @pytest.mark.asyncio
    async def test_pre_cancelled(self, fake_source, cancel_token) -> None:
        """Test that a fired token stops the run before any remote call."""
        cancel_token.cancel()

        with pytest.raises(OperationCancelledError):
            await IngestionPipeline(fake_source, fast_config()).ingest(
                "repo", cancel=cancel_token
            )

        assert fake_source.tree_calls == 0

    @pytest.mark.asyncio
    async def test_cancel_during_tree_listing_stores_nothing(self, cancel_token) -> None:
        """Test that a token fired while listing the tree stops the run before storage."""
        source = CancelDuringTree(files={"a.py": "a = 1\n"})
        store = InMemoryFileStore()

        with pytest.raises(OperationCancelledError):
            await IngestionPipeline(source, fast_config(), store=store).ingest(
                "repo", cancel=cancel_token
            )

        assert store.list_files("repo") == []
        assert source.content_calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_tree_listing_over_budget(self, cancel_token) -> None:
        """Test that cancellation wins over the budget failure report."""
        source = CancelDuringTree(files={"a.py": "x"}, sizes={"a.py": 3_000_000})

        with pytest.raises(OperationCancelledError):
            await IngestionPipeline(source, fast_config()).ingest("repo", cancel=cancel_token)

    @pytest.mark.asyncio
    async def test_hidden_files_option(self) -> None:
        """Test that indexer options flow through the pipeline."""
        source = FakeContentSource(files={".env.example": "A=1", "app.py": "x"})
        config = fast_config(indexer=IndexerOptions(include_hidden=False))

        report = await IngestionPipeline(source, config).ingest("repo")

        assert source.content_calls == ["app.py"]
        assert report.stats.excluded_by_path == 1


# =============================================================================
# InMemoryFileStore Tests
# =============================================================================


class TestInMemoryFileStore:
    """Tests for InMemoryFileStore."""

    def test_satisfies_contract(self) -> None:
        """Test the FileStore protocol check."""
        assert isinstance(InMemoryFileStore(), FileStore)

    @pytest.mark.asyncio
    async def test_empty_upsert(self) -> None:
        """Test that an empty upsert stores nothing."""
        store = InMemoryFileStore()

        assert await store.upsert_indexed_files("repo", []) == 0
        assert store.list_files("repo") == []

    @pytest.mark.asyncio
    async def test_insert(self) -> None:
        """Test inserting files with token estimates."""
        now = datetime(2026, 3, 1, tzinfo=UTC)
        store = InMemoryFileStore(clock=lambda: now)
        files = [IndexedFile(file_path="a.py", language="python", size_bytes=10)]

        assert await store.upsert_indexed_files("repo", files) == 1

        row = store.get("repo", "a.py")
        assert row is not None
        assert row.token_estimate == 3
        assert row.language == "python"
        assert row.last_seen_at == now

    @pytest.mark.asyncio
    async def test_update_on_conflict(self) -> None:
        """Test that a second upsert replaces metadata and refreshes last_seen_at."""
        times = iter(
            [datetime(2026, 3, 1, tzinfo=UTC), datetime(2026, 3, 1, tzinfo=UTC) + timedelta(days=1)]
        )
        store = InMemoryFileStore(clock=lambda: next(times))

        await store.upsert_indexed_files(
            "repo", [IndexedFile(file_path="a.py", language="python", size_bytes=10)]
        )
        await store.upsert_indexed_files(
            "repo", [IndexedFile(file_path="a.py", language=None, size_bytes=400)]
        )

        rows = store.list_files("repo")
        assert len(rows) == 1
        assert rows[0].size_bytes == 400
        assert rows[0].token_estimate == 100
        assert rows[0].language is None
        assert rows[0].last_seen_at.day == 2

    @pytest.mark.asyncio
    async def test_repositories_isolated(self) -> None:
        """Test that rows are keyed by repository."""
        store = InMemoryFileStore()
        file = IndexedFile(file_path="a.py", language="python", size_bytes=1)

        await store.upsert_indexed_files("one", [file])
        await store.upsert_indexed_files("two", [file])

        assert len(store.list_files("one")) == 1
        assert len(store.list_files("two")) == 1
        assert store.get("three", "a.py") is None
