"""Contract for the remote content API used by the ingestion pipeline.

Any implementation may fail with a rate-limit condition (an error carrying
HTTP status 403 or 429) or any other error; only the former is retried by
the pipeline. See integrations.github for the GitHub implementation.
"""

from typing import Protocol, runtime_checkable

from .cancellation import CancellationToken
from .models import (
    BlobContent,
    FetchedFileContent,
    RateLimitStatus,
    RemoteTree,
    RemoteTreeEntry,
)


@runtime_checkable
class RemoteContentSource(Protocol):
    """Read access to one repository's tree and file contents."""

    async def get_tree(
        self, ref: str, cancel: CancellationToken | None = None
    ) -> RemoteTree:
        """Recursively list the tree at a ref."""
        ...

    async def list_directory(
        self, path: str, ref: str, cancel: CancellationToken | None = None
    ) -> list[RemoteTreeEntry]:
        """List one directory, non-recursively.

        Raises:
            PathTypeMismatchError: If the path is a file.
        """
        ...

    async def get_file_content(
        self, path: str, ref: str, cancel: CancellationToken | None = None
    ) -> FetchedFileContent:
        """Fetch one file by path.

        Raises:
            PathTypeMismatchError: If the path is a directory.
        """
        ...

    async def get_blob_content(
        self, content_hash: str, cancel: CancellationToken | None = None
    ) -> BlobContent:
        """Fetch content by hash, skipping the path lookup."""
        ...

    async def get_rate_limit_status(self) -> RateLimitStatus:
        """Report current rate limit telemetry."""
        ...
