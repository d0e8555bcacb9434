"""
Async HTTP client for the prompt catalog API.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from api.schemas.prompts import CatalogName, UpsertPromptRequest, UpsertPromptResponse
from core.config import Settings
from core.exceptions import CatalogTransportError
from services.prompt_store import CatalogDocument, DeleteOutcome

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Accept": "application/json",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class PromptApiClient:
    """
    Thin wrapper over /api/prompts.

    Any transport failure or 5xx response raises CatalogTransportError;
    a 404 ``{"ok": false}`` on delete is reported as
    DeleteOutcome.NOT_FOUND instead. Any other 4xx raises too.
    """

    def __init__(self, client: httpx.AsyncClient, prefix: str = "/api/prompts"):
        self._client = client
        self._prefix = prefix.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PromptApiClient":
        return cls(
            httpx.AsyncClient(
                base_url=settings.api_base_url,
                timeout=settings.request_timeout,
            )
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PromptApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._prefix}{path}"
        try:
            response = await self._client.request(method, url, headers=NO_CACHE_HEADERS, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise CatalogTransportError(
                message=f"{method} {url} failed: {e}",
                details={"url": url},
            ) from e

        if response.status_code >= 500:
            raise CatalogTransportError(
                message=f"{method} {url} failed: {response.status_code}",
                details={"url": url, "status_code": response.status_code},
            )
        return response

    @staticmethod
    def _raise_for_client_error(response: httpx.Response) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CatalogTransportError(
                message=str(e),
                details={"status_code": response.status_code},
            ) from e

    async def get_catalog(self, name: CatalogName | str) -> CatalogDocument:
        response = await self._request("GET", f"/{CatalogName(name).value}")
        self._raise_for_client_error(response)
        try:
            data = response.json()
        except ValueError as e:
            raise CatalogTransportError(message=f"Invalid JSON in {name} catalog response") from e
        if not isinstance(data, dict):
            raise CatalogTransportError(message=f"Unexpected catalog payload for {name}")
        return data

    async def upsert(self, request: UpsertPromptRequest) -> str:
        response = await self._request(
            "POST",
            f"/{CatalogName.CUSTOM.value}",
            json=request.model_dump(mode="json", exclude_none=True),
        )
        self._raise_for_client_error(response)
        result = UpsertPromptResponse.model_validate(response.json())
        if not result.ok:
            raise CatalogTransportError(message="Failed to upsert custom prompt")
        return result.key

    async def delete(self, key: str) -> DeleteOutcome:
        response = await self._request(
            "DELETE",
            f"/{CatalogName.CUSTOM.value}/{quote(key, safe='')}",
        )
        if response.status_code == 404 and self._is_missing_key(response):
            return DeleteOutcome.NOT_FOUND
        self._raise_for_client_error(response)
        return DeleteOutcome.DELETED

    @staticmethod
    def _is_missing_key(response: httpx.Response) -> bool:
        """True for the API's own {"ok": false} body, not a routing 404."""
        try:
            body = response.json()
        except ValueError:
            return False
        return isinstance(body, dict) and body.get("ok") is False

    async def clear(self) -> None:
        response = await self._request("DELETE", f"/{CatalogName.CUSTOM.value}")
        self._raise_for_client_error(response)
