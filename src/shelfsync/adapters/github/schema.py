"""Pydantic models describing the GitHub contents API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class GitHubBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ContentsResponse(GitHubBaseModel):
    type: str = "file"
    name: str
    path: str
    sha: str
    size: int = 0
    encoding: str | None = None
    content: str | None = None
    download_url: str | None = None


class ContentRef(GitHubBaseModel):
    path: str
    sha: str


class CommitRef(GitHubBaseModel):
    sha: str
    message: str | None = None


class WriteResponse(GitHubBaseModel):
    content: ContentRef | None = None
    commit: CommitRef


class ErrorResponse(GitHubBaseModel):
    message: str = ""
    documentation_url: str | None = None
