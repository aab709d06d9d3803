"""GitHub API client for repository content ingestion.

Wraps the REST endpoints the ingestion pipeline reads from (commits, git
trees, contents, blobs and rate limit) and converts their payloads into
ingestion models. Requests authenticate with a personal access token or as
a GitHub App installation.
"""

import base64
import binascii
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from core.ingestion.cancellation import CancellationToken
from core.ingestion.errors import PathTypeMismatchError
from core.ingestion.models import (
    BlobContent,
    ContentEncoding,
    EntryKind,
    FetchedFileContent,
    RateLimitStatus,
    RemoteTree,
    RemoteTreeEntry,
)

from .auth import InstallationTokenCache
from .errors import GitHubAPIError
from .models import (
    ContentItemType,
    GitHubBlob,
    GitHubContentItem,
    GitHubRateResource,
    GitHubTree,
    TreeItemType,
)

logger = structlog.get_logger(__name__)


class GitHubClientConfig(BaseModel):
    """Connection and credential settings for GitHubClient.

    ``access_token`` takes precedence over App credentials when both are set.
    """

    model_config = ConfigDict(frozen=True)

    app_id: int | None = Field(None, description="GitHub App ID")
    private_key: str | None = Field(None, description="GitHub App private key (PEM)")
    installation_id: int | None = Field(None, description="App installation ID")
    access_token: str | None = Field(None, description="Personal access token")
    base_url: str = Field(default="https://api.github.com", description="REST API base URL")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")


def extract_rate_limit(headers: httpx.Headers) -> RateLimitStatus | None:
    """Parse ``x-ratelimit-*`` response headers.

    Args:
        headers: Response headers.

    Returns:
        RateLimitStatus, or None if the headers are absent.
    """
    if "x-ratelimit-remaining" not in headers:
        return None
    return RateLimitStatus(
        remaining=int(headers.get("x-ratelimit-remaining", "0")),
        limit=int(headers.get("x-ratelimit-limit", "5000")),
        used=int(headers.get("x-ratelimit-used", "0")),
        reset_at=datetime.fromtimestamp(int(headers.get("x-ratelimit-reset", "0")), tz=UTC),
    )


def decode_content(raw: str) -> tuple[str, ContentEncoding]:
    """Decode a base64 payload to UTF-8, keeping base64 if it is not text.

    Args:
        raw: Base64 content as returned by GitHub (may contain newlines).

    Returns:
        Tuple of (body, encoding).
    """
    compact = raw.replace("\n", "")
    try:
        return base64.b64decode(compact).decode("utf-8"), ContentEncoding.UTF8
    except (binascii.Error, UnicodeDecodeError):
        return compact, ContentEncoding.BASE64


class GitHubClient:
    """Async client for GitHub repository content.

    Use as an async context manager, or call ``close()`` when done. The
    rate limit headers of the latest response are kept in
    ``last_rate_limit``; they are informational and never gate requests.
    """

    def __init__(
        self,
        config: GitHubClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client configuration.
            transport: Optional httpx transport, for tests.
        """
        self.config = config
        self.last_rate_limit: RateLimitStatus | None = None
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._app_tokens: InstallationTokenCache | None = None
        if config.app_id and not config.access_token:
            self._app_tokens = InstallationTokenCache(
                config.app_id, config.private_key, config.installation_id
            )
        self._logger = logger.bind(component="github_client")

    async def __aenter__(self) -> "GitHubClient":
        self._client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers={
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _auth_headers(self) -> dict[str, str]:
        if self.config.access_token:
            return {"Authorization": f"Bearer {self.config.access_token}"}
        if self._app_tokens is not None:
            token = await self._app_tokens.get(self._client())
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        cancel: CancellationToken | None = None,
    ) -> Any:
        """Send an authenticated request and return the decoded JSON body.

        An App installation token rejected with 401 is refreshed once.

        Raises:
            OperationCancelledError: If the token has fired.
            GitHubAPIError: If the API returns an error status.
        """
        if cancel is not None:
            cancel.raise_if_cancelled()

        client = self._client()
        response = await client.request(
            method, path, params=params, headers=await self._auth_headers()
        )
        if response.status_code == 401 and self._app_tokens is not None:
            self._app_tokens.invalidate()
            response = await client.request(
                method, path, params=params, headers=await self._auth_headers()
            )

        rate_limit = extract_rate_limit(response.headers)
        if rate_limit is not None:
            self.last_rate_limit = rate_limit

        if response.is_error:
            self._logger.debug("request_failed", path=path, status=response.status_code)
            raise GitHubAPIError.from_response(response)

        return response.json()

    # Repository content operations

    async def resolve_commit(
        self,
        owner: str,
        repo: str,
        ref: str,
        cancel: CancellationToken | None = None,
    ) -> str:
        """Resolve a ref to a commit SHA.

        Args:
            owner: Repository owner.
            repo: Repository name.
            ref: Git reference (branch, tag, sha).
            cancel: Optional cancellation token.

        Returns:
            Commit SHA.
        """
        data = await self._request(
            "GET", f"/repos/{owner}/{repo}/commits/{quote(ref, safe='')}", cancel=cancel
        )
        sha: str = data["sha"]
        return sha

    async def get_tree(
        self,
        owner: str,
        repo: str,
        ref: str = "HEAD",
        cancel: CancellationToken | None = None,
    ) -> RemoteTree:
        """Recursively list the repository tree at a ref.

        Args:
            owner: Repository owner.
            repo: Repository name.
            ref: Git reference (branch, tag, sha).
            cancel: Optional cancellation token.

        Returns:
            RemoteTree rooted at the resolved commit.
        """
        commit_sha = await self.resolve_commit(owner, repo, ref, cancel)
        data = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{commit_sha}",
            params={"recursive": "1"},
            cancel=cancel,
        )
        tree = GitHubTree.model_validate(data)

        entries = [
            self._parse_tree_item(item.path, item.sha, item.size, item.type, item.mode)
            for item in tree.tree
            if item.type != TreeItemType.COMMIT
        ]
        return RemoteTree(entries=entries, root_hash=commit_sha, truncated=tree.truncated)

    async def list_directory(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str = "HEAD",
        cancel: CancellationToken | None = None,
    ) -> list[RemoteTreeEntry]:
        """List one directory, non-recursively.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: Directory path.
            ref: Git reference (branch, tag, sha).
            cancel: Optional cancellation token.

        Returns:
            Entries in the directory.

        Raises:
            PathTypeMismatchError: If the path is a file.
        """
        data = await self._get_contents(owner, repo, path, ref, cancel)
        if not isinstance(data, list):
            raise PathTypeMismatchError(path, "directory")

        entries: list[RemoteTreeEntry] = []
        for raw in data:
            item = GitHubContentItem.model_validate(raw)
            if item.type == ContentItemType.SUBMODULE:
                continue
            entries.append(
                RemoteTreeEntry(
                    path=item.path,
                    content_hash=item.sha,
                    size_bytes=item.size,
                    kind=EntryKind.DIRECTORY
                    if item.type == ContentItemType.DIR
                    else EntryKind.FILE,
                    mode="040000" if item.type == ContentItemType.DIR else "100644",
                )
            )
        return entries

    async def get_file_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str = "HEAD",
        cancel: CancellationToken | None = None,
    ) -> FetchedFileContent:
        """Get file content from repository.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: File path.
            ref: Git reference (branch, tag, sha).
            cancel: Optional cancellation token.

        Returns:
            FetchedFileContent, UTF-8 decoded when possible.

        Raises:
            PathTypeMismatchError: If the path is a directory or not a
                regular file.
        """
        data = await self._get_contents(owner, repo, path, ref, cancel)
        if isinstance(data, list):
            raise PathTypeMismatchError(path, "file")

        item = GitHubContentItem.model_validate(data)
        if item.type != ContentItemType.FILE or item.content is None:
            raise PathTypeMismatchError(path, "regular file")

        body, encoding = decode_content(item.content)
        return FetchedFileContent(
            path=item.path,
            content_hash=item.sha,
            body=body,
            encoding=encoding,
            size_bytes=item.size,
        )

    async def get_blob_content(
        self,
        owner: str,
        repo: str,
        sha: str,
        cancel: CancellationToken | None = None,
    ) -> BlobContent:
        """Get blob content by SHA.

        Args:
            owner: Repository owner.
            repo: Repository name.
            sha: Blob SHA.
            cancel: Optional cancellation token.

        Returns:
            BlobContent, UTF-8 decoded when possible.
        """
        data = await self._request("GET", f"/repos/{owner}/{repo}/git/blobs/{sha}", cancel=cancel)
        blob = GitHubBlob.model_validate(data)

        if blob.encoding == "base64":
            body, encoding = decode_content(blob.content)
        else:
            body, encoding = blob.content, ContentEncoding.UTF8

        return BlobContent(body=body, encoding=encoding, size_bytes=blob.size or 0)

    async def get_rate_limit_status(self) -> RateLimitStatus:
        """Get current rate limit status.

        Returns:
            RateLimitStatus for the core REST resource.
        """
        data = await self._request("GET", "/rate_limit")
        rate = GitHubRateResource.model_validate(data["rate"])
        return RateLimitStatus(
            remaining=rate.remaining,
            limit=rate.limit,
            used=rate.used,
            reset_at=datetime.fromtimestamp(rate.reset, tz=UTC),
        )

    async def _get_contents(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str,
        cancel: CancellationToken | None,
    ) -> Any:
        """Call the contents endpoint for a path."""
        return await self._request(
            "GET",
            f"/repos/{owner}/{repo}/contents/{quote(path)}",
            params={"ref": ref},
            cancel=cancel,
        )

    # Parsing helpers

    def _parse_tree_item(
        self,
        path: str,
        sha: str,
        size: int | None,
        item_type: TreeItemType,
        mode: str,
    ) -> RemoteTreeEntry:
        """Parse a tree item into a RemoteTreeEntry."""
        return RemoteTreeEntry(
            path=path,
            content_hash=sha,
            size_bytes=size or 0,
            kind=EntryKind.DIRECTORY if item_type == TreeItemType.TREE else EntryKind.FILE,
            mode=mode,
        )
