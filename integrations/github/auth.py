"""GitHub App installation authentication.

An App signs a short-lived RS256 JWT with its private key and exchanges it
for an installation token. Installation tokens are cached until shortly
before the ``expires_at`` GitHub reports for them.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime

import httpx
import jwt
import structlog

from .errors import GitHubAPIError

logger = structlog.get_logger(__name__)

# Backdated to tolerate clock drift between us and GitHub.
JWT_BACKDATE_SECONDS = 60
JWT_LIFETIME_SECONDS = 600

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
TOKEN_REFRESH_MARGIN_SECONDS = 60


def app_jwt(app_id: int, private_key: str, now: float | None = None) -> str:
    """Sign the App JWT used to request installation tokens.

    Args:
        app_id: GitHub App ID, used as the issuer.
        private_key: App private key in PEM format.
        now: Current epoch seconds, defaults to the wall clock.

    Returns:
        Encoded JWT.
    """
    issued_at = int(time.time() if now is None else now)
    claims = {
        "iat": issued_at - JWT_BACKDATE_SECONDS,
        "exp": issued_at + JWT_LIFETIME_SECONDS,
        "iss": str(app_id),
    }
    return jwt.encode(claims, private_key, algorithm="RS256")


def _expiry_of(payload: dict, now: float) -> float:
    expires_at = payload.get("expires_at")
    if not expires_at:
        return now + DEFAULT_TOKEN_LIFETIME_SECONDS
    return datetime.fromisoformat(expires_at.replace("Z", "+00:00")).timestamp()


class InstallationTokenCache:
    """Holds the current installation token for one App installation."""

    def __init__(
        self,
        app_id: int,
        private_key: str | None,
        installation_id: int | None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.app_id = app_id
        self.private_key = private_key
        self.installation_id = installation_id
        self._clock = clock
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def valid(self) -> bool:
        """Whether a cached token exists and is not close to expiry."""
        return (
            self._token is not None
            and self._clock() < self._expires_at - TOKEN_REFRESH_MARGIN_SECONDS
        )

    def invalidate(self) -> None:
        """Drop the cached token, forcing a refresh on next use."""
        self._token = None
        self._expires_at = 0.0

    async def get(self, http: httpx.AsyncClient) -> str:
        """Return a usable installation token, requesting one if needed.

        Raises:
            ValueError: If the App key or installation ID is missing.
            GitHubAPIError: If GitHub refuses the token request.
        """
        if self.valid:
            return self._token  # type: ignore[return-value]

        if not self.private_key:
            raise ValueError("GitHub App private key not configured")
        if not self.installation_id:
            raise ValueError("GitHub App installation ID not configured")

        async with self._lock:
            # Another caller may have refreshed while we waited.
            if self.valid:
                return self._token  # type: ignore[return-value]

            response = await http.post(
                f"/app/installations/{self.installation_id}/access_tokens",
                headers={"Authorization": f"Bearer {app_jwt(self.app_id, self.private_key)}"},
            )
            if response.is_error:
                raise GitHubAPIError.from_response(response)

            payload = response.json()
            self._token = payload["token"]
            self._expires_at = _expiry_of(payload, self._clock())
            logger.debug(
                "installation_token_refreshed",
                installation_id=self.installation_id,
                expires_at=payload.get("expires_at"),
            )
            return self._token
