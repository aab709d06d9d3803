"""Pydantic models for GitHub REST payloads.

This module defines the raw shapes returned by the git trees, contents,
blobs and rate limit endpoints. The client converts them into the
ingestion module's models.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TreeItemType(str, Enum):
    """Git object types in a tree listing."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"


class ContentItemType(str, Enum):
    """Entry types returned by the contents endpoint."""

    FILE = "file"
    DIR = "dir"
    SYMLINK = "symlink"
    SUBMODULE = "submodule"


class GitHubTreeItem(BaseModel):
    """One item of a git tree listing."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str = Field(..., description="Path relative to repo root")
    mode: str = Field("100644", description="File mode")
    type: TreeItemType = Field(..., description="Object type")
    sha: str = Field(..., description="Object SHA")
    size: int | None = Field(None, description="Blob size in bytes")


class GitHubTree(BaseModel):
    """A git tree listing."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    sha: str = Field(..., description="Tree SHA")
    tree: list[GitHubTreeItem] = Field(default_factory=list, description="Tree items")
    truncated: bool = Field(False, description="Whether the listing was capped")


class GitHubContentItem(BaseModel):
    """An entry from the contents endpoint.

    ``content`` and ``encoding`` are only present for single-file responses.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: ContentItemType = Field(..., description="Entry type")
    path: str = Field(..., description="Path relative to repo root")
    name: str = Field("", description="Leaf name")
    sha: str = Field(..., description="Blob SHA")
    size: int = Field(0, description="Size in bytes")
    content: str | None = Field(None, description="Base64 content")
    encoding: str | None = Field(None, description="Content encoding")


class GitHubBlob(BaseModel):
    """A git blob."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    sha: str = Field(..., description="Blob SHA")
    size: int | None = Field(None, description="Size in bytes")
    content: str = Field("", description="Blob content")
    encoding: str = Field("base64", description="Content encoding")


class GitHubRateResource(BaseModel):
    """The ``rate`` object of the rate limit endpoint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    limit: int = Field(..., description="Request limit")
    remaining: int = Field(..., description="Requests remaining")
    reset: int = Field(..., description="Reset time, epoch seconds")
    used: int = Field(0, description="Requests used")
