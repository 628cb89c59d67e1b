from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from notiontyped.core.config import DEFAULT_NOTION_VERSION, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"


class NotionAPIError(RuntimeError):
    """Raised for any non-2xx response from the Notion API."""

    def __init__(self, status_code: int, code: str | None, message: str) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        label = f"{status_code} {code}" if code else str(status_code)
        super().__init__(f"Notion API error ({label}): {message}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> NotionAPIError:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, Mapping):
            return cls(
                response.status_code,
                body.get("code"),
                str(body.get("message") or response.reason_phrase),
            )
        return cls(response.status_code, None, response.text or response.reason_phrase)


def _drop_none(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


class NotionHttpTransport:
    """Adapter around the Notion REST API (databases, pages, search)."""

    def __init__(
        self,
        api_key: str,
        *,
        client: httpx.AsyncClient | None = None,
        notion_version: str = DEFAULT_NOTION_VERSION,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        base_url: str = NOTION_API_URL,
    ) -> None:
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Notion-Version": notion_version,
            "Content-Type": "application/json",
        }
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _request(
        self, method: str, path: str, json: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        logger.debug("%s %s", method, url)
        response = await self._get_client().request(
            method, url, json=json, headers=self._headers
        )
        if response.status_code >= 400:
            error = NotionAPIError.from_response(response)
            logger.debug("Notion API call failed: %s", error)
            raise error
        return response.json()

    async def retrieve_database(self, database_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/databases/{database_id}")

    async def query_database(
        self,
        database_id: str,
        *,
        filter: Mapping[str, Any] | None = None,
        sorts: list[Mapping[str, Any]] | None = None,
        start_cursor: str | None = None,
        page_size: int | None = None,
    ) -> dict[str, Any]:
        body = _drop_none(
            {
                "filter": filter,
                "sorts": sorts,
                "start_cursor": start_cursor,
                "page_size": page_size,
            }
        )
        return await self._request("POST", f"/databases/{database_id}/query", json=body)

    async def create_page(
        self, database_id: str, properties: Mapping[str, Any]
    ) -> dict[str, Any]:
        body = {"parent": {"database_id": database_id}, "properties": dict(properties)}
        return await self._request("POST", "/pages", json=body)

    async def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/pages/{page_id}")

    async def update_page(
        self,
        page_id: str,
        *,
        properties: Mapping[str, Any] | None = None,
        archived: bool | None = None,
    ) -> dict[str, Any]:
        body = _drop_none(
            {
                "properties": dict(properties) if properties is not None else None,
                "archived": archived,
            }
        )
        return await self._request("PATCH", f"/pages/{page_id}", json=body)

    async def search_databases(self, query: str) -> list[dict[str, Any]]:
        """Return databases shared with the integration whose title matches `query`."""
        body = {"query": query, "filter": {"property": "object", "value": "database"}}
        response = await self._request("POST", "/search", json=body)
        return list(response.get("results") or [])

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> NotionHttpTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
