"""Repository-bound content source backed by the GitHub client."""

from core.config import Settings
from core.ingestion.cancellation import CancellationToken
from core.ingestion.models import (
    BlobContent,
    FetchedFileContent,
    RateLimitStatus,
    RemoteTree,
    RemoteTreeEntry,
)

from .client import GitHubClient, GitHubClientConfig


def parse_full_name(full_name: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its parts.

    Raises:
        ValueError: If the name is not exactly two non-empty segments.
    """
    parts = full_name.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid GitHub full name format: {full_name}")
    return parts[0], parts[1]


def client_config_from_settings(settings: Settings) -> GitHubClientConfig:
    """Build GitHub client configuration from application settings."""
    return GitHubClientConfig(
        app_id=settings.github_app_id,
        private_key=settings.github_private_key,
        installation_id=settings.github_installation_id,
        access_token=settings.github_access_token,
        base_url=settings.github_api_url,
        timeout=settings.github_timeout,
    )


class GitHubContentSource:
    """RemoteContentSource for one GitHub repository."""

    def __init__(self, client: GitHubClient, owner: str, repo: str) -> None:
        self.client = client
        self.owner = owner
        self.repo = repo

    @classmethod
    def from_full_name(cls, client: GitHubClient, full_name: str) -> "GitHubContentSource":
        """Create a source from an ``owner/repo`` name."""
        owner, repo = parse_full_name(full_name)
        return cls(client, owner, repo)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    async def get_tree(self, ref: str, cancel: CancellationToken | None = None) -> RemoteTree:
        return await self.client.get_tree(self.owner, self.repo, ref, cancel)

    async def list_directory(
        self, path: str, ref: str, cancel: CancellationToken | None = None
    ) -> list[RemoteTreeEntry]:
        return await self.client.list_directory(self.owner, self.repo, path, ref, cancel)

    async def get_file_content(
        self, path: str, ref: str, cancel: CancellationToken | None = None
    ) -> FetchedFileContent:
        return await self.client.get_file_content(self.owner, self.repo, path, ref, cancel)

    async def get_blob_content(
        self, content_hash: str, cancel: CancellationToken | None = None
    ) -> BlobContent:
        return await self.client.get_blob_content(self.owner, self.repo, content_hash, cancel)

    async def get_rate_limit_status(self) -> RateLimitStatus:
        return await self.client.get_rate_limit_status()
