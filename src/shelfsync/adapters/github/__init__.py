"""Public interface for the GitHub contents adapter."""

from __future__ import annotations

from .client import GitHubContentsClient
from .schema import ContentsResponse, WriteResponse

__all__ = ["ContentsResponse", "GitHubContentsClient", "WriteResponse"]
