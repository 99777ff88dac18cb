"""HTTP client for the inventory service."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Unpack
from urllib.parse import quote

import httpx

from shelfsync.adapters.http_resilience import (
    RequestOptions,
    ResilientClient,
    default_client_factory,
)
from shelfsync.config.inventory import InventoryConfig, get_inventory_config
from shelfsync.domain.errors import NetworkError, RemoteTimeoutError
from shelfsync.domain.ports.inventory import InventoryService

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from shelfsync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

INVENTORY_PATH = "/inventory"
HEALTH_PATH = "/api/server-status"


def _decode(response: httpx.Response) -> object:
    # the backend sometimes answers with plain text holding JSON
    try:
        return response.json()
    except ValueError:
        return response.text


@dataclass(slots=True)
class HttpInventoryService:
    config: InventoryConfig = field(default_factory=get_inventory_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    def url(self, path: str) -> str:
        base_url = (self.config.resilience.base_url or self.config.base_url).rstrip("/")
        return f"{base_url}{path}"

    def record_url(self, entity_id: str) -> str:
        return self.url(f"{INVENTORY_PATH}/{quote(entity_id, safe='')}")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_one(self, entity_id: str) -> object | None:
        response = await self._request("GET", self.record_url(entity_id))
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        self._raise_for_status(response)
        return _decode(response)

    async def fetch_bulk(self, entity_ids: Sequence[str] | None = None) -> object:
        if entity_ids is not None and not entity_ids:
            return []
        params = {"ids": ",".join(entity_ids)} if entity_ids is not None else None
        response = await self._request("GET", self.url(INVENTORY_PATH), params=params)
        self._raise_for_status(response)
        return _decode(response)

    async def save(self, entity_id: str, payload: dict[str, object]) -> object:
        response = await self._request("POST", self.record_url(entity_id), json=payload)
        self._raise_for_status(response)
        return _decode(response)

    async def delete(self, entity_id: str) -> bool:
        response = await self._request("DELETE", self.record_url(entity_id))
        if response.status_code == httpx.codes.NOT_FOUND:
            log.info("Inventory for %s was already absent", entity_id)
            return True
        self._raise_for_status(response)
        return True

    async def is_available(self) -> bool:
        try:
            response = await self._request("GET", self.url(HEALTH_PATH))
        except NetworkError as exc:
            log.warning("Inventory service unreachable: %s", exc)
            return False
        return response.is_success

    async def _request(
        self, method: str, url: str, **kwargs: Unpack[RequestOptions]
    ) -> httpx.Response:
        client = self._http()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise RemoteTimeoutError(f"{method} {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        return self._client

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        status = response.status_code
        raise NetworkError(
            f"Inventory service returned {status} {response.reason_phrase} "
            f"for {response.request.method} {response.request.url}",
            status_code=status,
        )


if TYPE_CHECKING:
    _service_check: InventoryService = HttpInventoryService()
