"""Persistence of indexed file snapshots.

The pipeline only depends on the FileStore contract: upsert keyed on
(repository_id, file_path), refreshing ``last_seen_at`` on every run.
InMemoryFileStore implements it for local runs and tests.
"""

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

import structlog

from .budget import estimate_tokens
from .models import IndexedFile, StoredFile

logger = structlog.get_logger(__name__)


@runtime_checkable
class FileStore(Protocol):
    """Storage for indexed file snapshots."""

    async def upsert_indexed_files(
        self, repository_id: str, files: Sequence[IndexedFile]
    ) -> int:
        """Insert or update files, returning the number stored."""
        ...


class InMemoryFileStore:
    """Dict-backed FileStore."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._rows: dict[tuple[str, str], StoredFile] = {}
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def upsert_indexed_files(
        self, repository_id: str, files: Sequence[IndexedFile]
    ) -> int:
        """Insert new files and update existing ones.

        On conflict, language, size and token estimate are replaced and
        ``last_seen_at`` is refreshed.

        Args:
            repository_id: Repository identifier.
            files: Indexed files to store.

        Returns:
            Number of files stored (inserted or updated).
        """
        if not files:
            return 0

        now = self._clock()
        for file in files:
            self._rows[(repository_id, file.file_path)] = StoredFile(
                repository_id=repository_id,
                file_path=file.file_path,
                language=file.language,
                size_bytes=file.size_bytes,
                token_estimate=estimate_tokens(file.size_bytes),
                last_seen_at=now,
            )

        logger.debug("indexed_files_stored", repository_id=repository_id, count=len(files))
        return len(files)

    def get(self, repository_id: str, file_path: str) -> StoredFile | None:
        """Get a stored file, or None if absent."""
        return self._rows.get((repository_id, file_path))

    def list_files(self, repository_id: str) -> list[StoredFile]:
        """List stored files for a repository, sorted by path."""
        rows = [row for (repo, _), row in self._rows.items() if repo == repository_id]
        return sorted(rows, key=lambda row: row.file_path)
