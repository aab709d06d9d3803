"""Pytest configuration and shared fixtures for ingestion tests.

This module provides common fixtures used across the test modules,
including tree entry builders and an in-memory remote content source.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from core.ingestion.cancellation import CancellationToken
from core.ingestion.errors import PathTypeMismatchError, RemoteAPIError
from core.ingestion.models import (
    BlobContent,
    ContentEncoding,
    EntryKind,
    FetchedFileContent,
    RateLimitStatus,
    RemoteTree,
    RemoteTreeEntry,
)

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_entry(
    path: str,
    size: int = 100,
    kind: EntryKind = EntryKind.FILE,
    content_hash: str | None = None,
) -> RemoteTreeEntry:
    """Build a RemoteTreeEntry with sensible defaults."""
    return RemoteTreeEntry(
        path=path,
        content_hash=content_hash or f"sha-{path}",
        size_bytes=size,
        kind=kind,
        mode="040000" if kind == EntryKind.DIRECTORY else "100644",
    )


def make_content(path: str, body: str = "content") -> FetchedFileContent:
    """Build a FetchedFileContent for a path."""
    return FetchedFileContent(
        path=path,
        content_hash=f"sha-{path}",
        body=body,
        encoding=ContentEncoding.UTF8,
        size_bytes=len(body),
    )


def rate_limited(status: int = 429) -> RemoteAPIError:
    """Build a rate-limit error as the remote would raise it."""
    return RemoteAPIError("API rate limit exceeded", status_code=status)


# ---------------------------------------------------------------------------
# Fake remote content source
# ---------------------------------------------------------------------------


class FakeContentSource:
    """In-memory RemoteContentSource.

    Files are given as ``path -> body``. ``failures`` maps a path (or
    ``"__tree__"`` for the tree listing) to a list of exceptions raised on
    successive calls before the real value is returned.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        directories: list[str] | None = None,
        sizes: dict[str, int] | None = None,
        truncated: bool = False,
    ) -> None:
        self.files = files or {}
        self.directories = directories or []
        self.sizes = sizes or {}
        self.truncated = truncated
        self.failures: dict[str, list[Exception]] = {}
        self.content_calls: list[str] = []
        self.blob_calls: list[str] = []
        self.tree_calls = 0

    def _maybe_fail(self, key: str) -> None:
        pending = self.failures.get(key)
        if pending:
            raise pending.pop(0)

    def _size(self, path: str) -> int:
        return self.sizes.get(path, len(self.files[path]))

    async def get_tree(self, ref: str, cancel: CancellationToken | None = None) -> RemoteTree:
        self.tree_calls += 1
        self._maybe_fail("__tree__")
        entries = [make_entry(d, size=0, kind=EntryKind.DIRECTORY) for d in self.directories]
        entries += [make_entry(path, size=self._size(path)) for path in self.files]
        return RemoteTree(entries=entries, root_hash=f"commit-{ref}", truncated=self.truncated)

    async def list_directory(
        self, path: str, ref: str, cancel: CancellationToken | None = None
    ) -> list[RemoteTreeEntry]:
        if path in self.files:
            raise PathTypeMismatchError(path, "directory")
        prefix = f"{path}/"
        return [
            make_entry(p, size=self._size(p))
            for p in self.files
            if p.startswith(prefix) and "/" not in p[len(prefix) :]
        ]

    async def get_file_content(
        self, path: str, ref: str, cancel: CancellationToken | None = None
    ) -> FetchedFileContent:
        self.content_calls.append(path)
        if cancel is not None:
            cancel.raise_if_cancelled()
        self._maybe_fail(path)
        if path in self.directories:
            raise PathTypeMismatchError(path, "file")
        return make_content(path, self.files[path])

    async def get_blob_content(
        self, content_hash: str, cancel: CancellationToken | None = None
    ) -> BlobContent:
        self.blob_calls.append(content_hash)
        path = content_hash.removeprefix("sha-")
        self._maybe_fail(path)
        body = self.files[path]
        return BlobContent(body=body, encoding=ContentEncoding.UTF8, size_bytes=len(body))

    async def get_rate_limit_status(self) -> RateLimitStatus:
        return RateLimitStatus(
            remaining=4999,
            limit=5000,
            used=1,
            reset_at=datetime(2026, 1, 1, tzinfo=UTC),
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def entry_factory() -> Callable[..., RemoteTreeEntry]:
    """Factory for RemoteTreeEntry objects."""
    return make_entry


@pytest.fixture
def sample_tree() -> list[RemoteTreeEntry]:
    """A mixed listing covering every filter bucket."""
    return [
        make_entry("src", size=0, kind=EntryKind.DIRECTORY),
        make_entry("src/index.ts", size=1200),
        make_entry("src/utils/helpers.py", size=800),
        make_entry("README.md", size=400),
        make_entry("node_modules/lodash/index.js", size=5000),
        make_entry("package-lock.json", size=90000),
        make_entry("assets/logo.png", size=2048),
        make_entry("dist/bundle.min.js", size=3000),
        make_entry("data/huge.json", size=2 * 1024 * 1024),
        make_entry(".gitignore", size=50),
        make_entry("Dockerfile", size=300),
    ]


@pytest.fixture
def fake_source() -> FakeContentSource:
    """A small repository with three source files."""
    return FakeContentSource(
        files={
            "src/main.py": "print('hello')\n",
            "src/util.ts": "export const x = 1;\n",
            "README.md": "# Title\n",
        },
        directories=["src"],
    )


@pytest.fixture
def cancel_token() -> CancellationToken:
    """A fresh cancellation token."""
    return CancellationToken()
