"""GitHub API error type."""

import httpx

from core.ingestion.errors import RemoteAPIError


class GitHubAPIError(RemoteAPIError):
    """Error response from the GitHub API."""

    @classmethod
    def from_response(cls, response: httpx.Response) -> "GitHubAPIError":
        """Build an error from a non-2xx response, preferring GitHub's message."""
        try:
            payload = response.json()
        except ValueError:
            payload = None
        detail = payload.get("message") if isinstance(payload, dict) else None
        return cls(
            f"GitHub API error: {response.status_code} - {detail or response.text}",
            status_code=response.status_code,
        )
