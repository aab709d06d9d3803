"""Settings management for the ingestion service.

This module provides centralized configuration management using pydantic-settings.
All configuration is loaded from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        log_level: Logging level.
        log_json: Render logs as JSON instead of console output.

        github_api_url: GitHub REST API base URL.
        github_app_id: GitHub App ID.
        github_private_key: GitHub App private key (PEM).
        github_installation_id: GitHub App installation ID.
        github_access_token: Personal access token, used instead of App auth.
        github_timeout: Request timeout in seconds.

        ingestion_token_limit: Maximum estimated tokens for a repository.
        ingestion_chunk_budget: Maximum tokens per chunk, defaults to the limit.
        ingestion_concurrency: Concurrent file fetches per window.
        ingestion_max_retries: Rate-limit retries per remote call.
        ingestion_base_delay_ms: Base backoff delay in milliseconds.
        ingestion_max_file_size: Largest file in bytes to include.
        ingestion_include_hidden: Keep dotfiles.
        ingestion_exclude_patterns: Extra path exclusion substrings.
        ingestion_binary_extensions: Extra binary extensions.
        ingestion_fetch_by_hash: Fetch bodies by blob hash instead of path.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Render logs as JSON")

    # GitHub integration
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
    )
    github_app_id: int | None = Field(default=None, description="GitHub App ID")
    github_private_key: str | None = Field(
        default=None,
        description="GitHub App private key",
    )
    github_installation_id: int | None = Field(
        default=None,
        description="GitHub App installation ID",
    )
    github_access_token: str | None = Field(
        default=None,
        description="Personal access token",
    )
    github_timeout: float = Field(default=30.0, description="Request timeout in seconds")

    # Ingestion settings
    ingestion_token_limit: int = Field(
        default=600_000,
        description="Maximum estimated tokens per repository",
    )
    ingestion_chunk_budget: int | None = Field(
        default=None,
        description="Maximum tokens per chunk",
    )
    ingestion_concurrency: int = Field(default=5, ge=1, description="Concurrent fetches")
    ingestion_max_retries: int = Field(default=3, ge=0, description="Rate-limit retries")
    ingestion_base_delay_ms: float = Field(default=1000, ge=0, description="Base backoff delay")
    ingestion_max_file_size: int = Field(
        default=1024 * 1024,
        description="Largest file size in bytes",
    )
    ingestion_include_hidden: bool = Field(default=True, description="Include dotfiles")
    ingestion_exclude_patterns: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Extra path exclusion patterns (comma separated)",
    )
    ingestion_binary_extensions: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Extra binary extensions (comma separated)",
    )
    ingestion_fetch_by_hash: bool = Field(
        default=False,
        description="Fetch file bodies by blob hash",
    )

    @field_validator("ingestion_exclude_patterns", "ingestion_binary_extensions", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("github_private_key")
    @classmethod
    def _unescape_newlines(cls, value: str | None) -> str | None:
        # Keys passed through env files often carry literal "\n" sequences.
        return value.replace("\\n", "\n") if value else value


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are loaded once and reused.

    Returns:
        The application settings instance.
    """
    return Settings()
