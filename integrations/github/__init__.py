"""GitHub integration for repository content ingestion.

This module provides:
- GitHub API client for tree, contents, blob and rate limit endpoints
- GitHub App installation token handling
- A repository-bound RemoteContentSource for the ingestion pipeline
"""

from .auth import InstallationTokenCache, app_jwt
from .client import GitHubClient, GitHubClientConfig
from .content import GitHubContentSource, client_config_from_settings, parse_full_name
from .errors import GitHubAPIError
from .models import (
    GitHubBlob,
    GitHubContentItem,
    GitHubRateResource,
    GitHubTree,
    GitHubTreeItem,
)

__all__ = [
    # Client
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubAPIError",
    # Auth
    "InstallationTokenCache",
    "app_jwt",
    # Content source
    "GitHubContentSource",
    "client_config_from_settings",
    "parse_full_name",
    # Models
    "GitHubTree",
    "GitHubTreeItem",
    "GitHubContentItem",
    "GitHubBlob",
    "GitHubRateResource",
]
