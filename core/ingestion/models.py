"""Pydantic models for the ingestion module.

This module defines the data models used for repository content ingestion:
remote tree entries, indexed files and filtering statistics, token budget
results, fetched and formatted file contents, chunks, and the report
returned for a whole ingestion run. All models are immutable once created.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class EntryKind(str, Enum):
    """Kind of entry in a remote tree listing."""

    FILE = "file"
    DIRECTORY = "directory"


class ContentEncoding(str, Enum):
    """Encoding of a fetched file body."""

    UTF8 = "utf8"
    BASE64 = "base64"


class IngestionStatus(str, Enum):
    """Final status of an ingestion run."""

    INGESTED = "ingested"
    FAILED = "failed"


class RemoteTreeEntry(BaseModel):
    """A single entry from the remote tree listing.

    Attributes:
        path: Path relative to the repository root.
        content_hash: Content-addressed hash (blob SHA).
        size_bytes: Size of the entry in bytes.
        kind: Whether this is a file or a directory.
        mode: File mode as reported by the remote.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Path relative to repo root")
    content_hash: str = Field(..., description="Content hash")
    size_bytes: int = Field(0, ge=0, description="Size in bytes")
    kind: EntryKind = Field(EntryKind.FILE, description="Entry kind")
    mode: str = Field("100644", description="File mode")


class RemoteTree(BaseModel):
    """Result of a recursive tree listing.

    Attributes:
        entries: Entries in listing order.
        root_hash: Commit SHA the tree was resolved from.
        truncated: True if the remote capped the listing.
    """

    model_config = ConfigDict(frozen=True)

    entries: list[RemoteTreeEntry] = Field(default_factory=list, description="Tree entries")
    root_hash: str = Field(..., description="Resolved commit SHA")
    truncated: bool = Field(False, description="Whether the listing was capped")


class IndexedFile(BaseModel):
    """A file that survived all exclusion filters.

    Attributes:
        file_path: Path relative to the repository root.
        language: Detected language, None if unknown.
        size_bytes: File size in bytes.
    """

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(..., description="Path relative to repo root")
    language: str | None = Field(None, description="Detected language")
    size_bytes: int = Field(..., ge=0, description="File size in bytes")


class IndexStats(BaseModel):
    """Statistics about a tree indexing pass.

    ``included_files + excluded_by_path + excluded_by_extension +
    excluded_by_size == total_files``. Directories are never counted.
    """

    model_config = ConfigDict(frozen=True)

    total_files: int = Field(0, ge=0, description="Files in the input listing")
    included_files: int = Field(0, ge=0, description="Files that passed all filters")
    excluded_by_path: int = Field(0, ge=0, description="Files excluded by path")
    excluded_by_extension: int = Field(0, ge=0, description="Files excluded by extension")
    excluded_by_size: int = Field(0, ge=0, description="Files excluded by size")


class IndexResult(BaseModel):
    """Indexed files and their filtering statistics."""

    model_config = ConfigDict(frozen=True)

    files: list[IndexedFile] = Field(default_factory=list, description="Indexed files")
    stats: IndexStats = Field(default_factory=IndexStats, description="Filter statistics")


class TokenBudgetResult(BaseModel):
    """Approximate token cost of a file set against a limit.

    Attributes:
        total_bytes: Sum of file sizes.
        estimated_tokens: Linear token estimate for total_bytes.
        limit: The limit checked against.
    """

    model_config = ConfigDict(frozen=True)

    total_bytes: int = Field(..., ge=0, description="Total bytes")
    estimated_tokens: int = Field(..., ge=0, description="Estimated tokens")
    limit: int = Field(..., ge=0, description="Token limit")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def exceeds_limit(self) -> bool:
        """Whether the estimate is strictly over the limit."""
        return self.estimated_tokens > self.limit


class BudgetExceeded(BaseModel):
    """Structured failure for a repository over the token limit."""

    model_config = ConfigDict(frozen=True)

    total_bytes: int = Field(..., ge=0, description="Total bytes")
    estimated_tokens: int = Field(..., ge=0, description="Estimated tokens")
    limit: int = Field(..., ge=0, description="Token limit")
    message: str = Field(..., description="Human-readable message")


class BlobContent(BaseModel):
    """Content fetched by content hash."""

    model_config = ConfigDict(frozen=True)

    body: str = Field(..., description="Decoded or base64 body")
    encoding: ContentEncoding = Field(ContentEncoding.UTF8, description="Body encoding")
    size_bytes: int = Field(0, ge=0, description="Size in bytes")


class FetchedFileContent(BaseModel):
    """A file body retrieved from the remote content API."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Path relative to repo root")
    content_hash: str = Field(..., description="Content hash")
    body: str = Field(..., description="Decoded or base64 body")
    encoding: ContentEncoding = Field(ContentEncoding.UTF8, description="Body encoding")
    size_bytes: int = Field(0, ge=0, description="Size in bytes")


class FileFetchFailure(BaseModel):
    """A file whose content could not be fetched after retries."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Path that failed")
    error_type: str = Field(..., description="Error class name")
    message: str = Field(..., description="Error message")


class FormattedFile(BaseModel):
    """A file rendered into its canonical text block.

    Attributes:
        path: Path relative to the repository root.
        language: Language used for the label, None if unknown.
        raw_body: The unmodified file body.
        rendered_text: Header, language label and fenced body.
        token_estimate: Approximate token cost of rendered_text.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="File path")
    language: str | None = Field(None, description="Language")
    raw_body: str = Field(..., description="Raw body")
    rendered_text: str = Field(..., description="Rendered text block")
    token_estimate: int = Field(..., ge=0, description="Token estimate")


class Chunk(BaseModel):
    """An ordered group of formatted files that fits the budget."""

    model_config = ConfigDict(frozen=True)

    files: list[FormattedFile] = Field(default_factory=list, description="Files in order")
    concatenated_text: str = Field(..., description="Joined rendered text")
    total_tokens: int = Field(..., ge=0, description="Sum of token estimates")
    chunk_index: int = Field(..., ge=0, description="0-based chunk index")


class IngestionResult(BaseModel):
    """Chunks produced from the fetched file set.

    Attributes:
        chunks: Chunks in order.
        total_files_included: Files placed in some chunk.
        total_tokens: Sum of chunk token totals.
        skipped_files: Paths whose rendered form alone exceeds the budget.
    """

    model_config = ConfigDict(frozen=True)

    chunks: list[Chunk] = Field(default_factory=list, description="Chunks")
    total_files_included: int = Field(0, ge=0, description="Files in chunks")
    total_tokens: int = Field(0, ge=0, description="Total tokens")
    skipped_files: list[str] = Field(default_factory=list, description="Oversized files")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def exceeds_budget(self) -> bool:
        """True if the content needed more than one chunk."""
        return len(self.chunks) > 1


class RateLimitStatus(BaseModel):
    """Rate limit telemetry reported by the remote API."""

    model_config = ConfigDict(frozen=True)

    remaining: int = Field(..., ge=0, description="Requests remaining")
    limit: int = Field(..., ge=0, description="Request limit")
    used: int = Field(0, ge=0, description="Requests used")
    reset_at: datetime = Field(..., description="When the window resets")


class StoredFile(BaseModel):
    """Persisted snapshot of an indexed file."""

    model_config = ConfigDict(frozen=True)

    repository_id: str = Field(..., description="Repository identifier")
    file_path: str = Field(..., description="Path relative to repo root")
    language: str | None = Field(None, description="Detected language")
    size_bytes: int = Field(..., ge=0, description="File size in bytes")
    token_estimate: int = Field(..., ge=0, description="Token estimate from size")
    last_seen_at: datetime = Field(..., description="Last ingestion that saw this file")


class IngestionReport(BaseModel):
    """Outcome of one ingestion run.

    A failed run is a reportable outcome: ``failure`` carries the budget
    overflow details when the run stopped before fetching any content.
    """

    model_config = ConfigDict(frozen=True)

    repository_id: str = Field(..., description="Repository identifier")
    ref: str = Field(..., description="Requested ref")
    commit_sha: str | None = Field(None, description="Resolved commit SHA")
    status: IngestionStatus = Field(..., description="Run status")
    stats: IndexStats = Field(default_factory=IndexStats, description="Index statistics")
    budget: TokenBudgetResult | None = Field(None, description="Budget check")
    truncated: bool = Field(False, description="Whether the tree was truncated")
    stored_count: int = Field(0, ge=0, description="Files upserted to storage")
    failed_files: list[FileFetchFailure] = Field(
        default_factory=list, description="Per-file fetch failures"
    )
    result: IngestionResult | None = Field(None, description="Chunked content")
    failure: BudgetExceeded | None = Field(None, description="Budget failure")
    duration_ms: int = Field(0, ge=0, description="Run duration in ms")

    @property
    def succeeded(self) -> bool:
        """Whether the run produced chunked content."""
        return self.status == IngestionStatus.INGESTED
