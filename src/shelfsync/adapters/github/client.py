"""Remote catalog client for the GitHub repository contents API."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Unpack
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from shelfsync.adapters.http_resilience import (
    RequestOptions,
    ResilientClient,
    default_client_factory,
)
from shelfsync.config.catalog import GITHUB_API_BASE_URL, CatalogConfig, get_catalog_config
from shelfsync.domain.errors import ConflictError, NetworkError, NotFoundError, RemoteTimeoutError
from shelfsync.domain.ports.catalog import CommitResult, RemoteCatalogClient, RemoteFile

from .schema import ContentsResponse, ErrorResponse, WriteResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from shelfsync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


def _error_message(response: httpx.Response) -> str:
    try:
        return ErrorResponse.model_validate(response.json()).message or response.reason_phrase
    except (ValueError, PydanticValidationError):
        return response.reason_phrase


def _is_sha_conflict(response: httpx.Response) -> bool:
    if response.status_code == httpx.codes.CONFLICT:
        return True
    return (
        response.status_code == httpx.codes.UNPROCESSABLE_ENTITY
        and "sha" in _error_message(response).lower()
    )


@dataclass(slots=True)
class GitHubContentsClient:
    config: CatalogConfig = field(default_factory=get_catalog_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    def contents_url(self, path: str) -> str:
        base_url = (self.config.resilience.base_url or GITHUB_API_BASE_URL).rstrip("/")
        quoted = quote(path.lstrip("/"), safe="/")
        return f"{base_url}/repos/{self.config.owner}/{self.config.repository}/contents/{quoted}"

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_file(self, path: str) -> RemoteFile | None:
        metadata = await self._get_metadata(path)
        if metadata is None:
            return None
        if metadata.type != "file":
            raise NotFoundError(f"{path} is a {metadata.type}, not a file")

        if metadata.encoding == "base64" and metadata.content:
            content = base64.b64decode(metadata.content)
        elif metadata.download_url:
            # files above the inline limit come back without content
            content = await self._download(metadata.download_url, path)
        else:
            content = b""
        return RemoteFile(content=content, sha=metadata.sha)

    async def put_file(
        self,
        path: str,
        content: bytes,
        *,
        expected_sha: str | None,
        message: str,
    ) -> CommitResult:
        body: dict[str, object] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.config.branch,
        }
        if expected_sha is not None:
            body["sha"] = expected_sha

        response = await self._request("PUT", self.contents_url(path), json=body)
        if _is_sha_conflict(response):
            raise ConflictError(
                path, f"{path} changed on {self.config.branch}: {_error_message(response)}"
            )
        self._raise_for_status(response, path)

        payload = WriteResponse.model_validate(response.json())
        log.info("Wrote %s (%s)", path, payload.commit.sha[:7])
        return CommitResult(
            commit_id=payload.commit.sha,
            sha=payload.content.sha if payload.content is not None else None,
        )

    async def delete_file(self, path: str, *, message: str) -> bool:
        metadata = await self._get_metadata(path)
        if metadata is None:
            return False

        body = {"message": message, "sha": metadata.sha, "branch": self.config.branch}
        response = await self._request("DELETE", self.contents_url(path), json=body)
        if response.status_code == httpx.codes.NOT_FOUND:
            return False
        if _is_sha_conflict(response):
            raise ConflictError(path)
        self._raise_for_status(response, path)
        log.info("Deleted %s", path)
        return True

    async def _get_metadata(self, path: str) -> ContentsResponse | None:
        response = await self._request(
            "GET", self.contents_url(path), params={"ref": self.config.branch}
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        self._raise_for_status(response, path)
        try:
            payload = response.json()
            if isinstance(payload, list):
                # directories come back as a listing
                raise NotFoundError(f"{path} is a directory, not a file")
            return ContentsResponse.model_validate(payload)
        except (ValueError, PydanticValidationError) as exc:
            raise NetworkError(f"Unexpected contents payload for {path}") from exc

    async def _download(self, url: str, path: str) -> bytes:
        response = await self._request("GET", url, headers={"Accept": "application/vnd.github.raw"})
        self._raise_for_status(response, path)
        return response.content

    async def _request(
        self, method: str, url: str, **kwargs: Unpack[RequestOptions]
    ) -> httpx.Response:
        headers = {**self.headers, **dict(kwargs.pop("headers", None) or {})}
        client = self._http()
        try:
            return await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise RemoteTimeoutError(f"{method} {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        return self._client

    @staticmethod
    def _raise_for_status(response: httpx.Response, path: str) -> None:
        if response.is_success:
            return
        status = response.status_code
        if status == httpx.codes.UNAUTHORIZED:
            detail = "invalid or expired token"
        else:
            detail = _error_message(response)
        log.error(f"GitHub API error {status} for {path}: {detail}")
        raise NetworkError(f"GitHub returned {status} for {path}: {detail}", status_code=status)


if TYPE_CHECKING:
    _client_check: RemoteCatalogClient = GitHubContentsClient()
