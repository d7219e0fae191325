"""
HTTP client for the Flex REST API.

Thin wrapper around ``httpx.AsyncClient`` that adds the static auth header
and routes every GET through the RetryExecutor.
"""

import httpx
from typing import Any, Dict, List, Optional
from core.config import settings
from core.exceptions import RemoteAPIError
from replication.retry import RetryExecutor
import logging

logger = logging.getLogger(__name__)


class RemoteAPIClient:
    """
    Async client for the remote collection endpoints.

    Endpoints used:
        GET /{collection}?page=&size=   -> {totalElements, totalPages, content}
        GET /{collection}/{id}          -> one record
        GET /{collection}?...           -> bare list (unpaged endpoints)

    Use as an async context manager so the connection pool is released.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        auth_header: Optional[str] = None,
        timeout: Optional[float] = None,
        executor: Optional[RetryExecutor] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.FLEX_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.FLEX_API_KEY
        self.auth_header = auth_header or settings.FLEX_AUTH_HEADER
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.executor = executor or RetryExecutor()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.requests_made = 0

    async def __aenter__(self) -> "RemoteAPIClient":
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            headers[self.auth_header] = self.api_key

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport
        )
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        """GET through the retry executor and decode JSON. None on 404."""
        if self._client is None:
            raise RemoteAPIError("Client is not open", context={"path": path})

        client = self._client

        async def call() -> httpx.Response:
            self.requests_made += 1
            return await client.get(path, params=params)

        response = await self.executor.execute(call, description=f"GET {path}")
        if response is None:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RemoteAPIError(
                "Failed to parse JSON response",
                context={
                    "path": path,
                    "params": params,
                    "response_body": response.text[:500]
                },
                original_exception=e
            )

    async def get_page(
        self,
        path: str,
        page: int,
        size: int,
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Fetch one page of a paginated collection"""
        query = dict(params or {})
        query["page"] = page
        query["size"] = size
        return await self._get(path, query)

    async def get_record(self, path: str, remote_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one record by id. None when the remote no longer has it."""
        data = await self._get(f"{path.rstrip('/')}/{remote_id}")
        if data is not None and not isinstance(data, dict):
            raise RemoteAPIError(
                "Detail endpoint did not return an object",
                context={"path": path, "remote_id": remote_id, "type": type(data).__name__}
            )
        return data

    async def get_list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch an unpaged list endpoint. Empty on 404."""
        data = await self._get(path, params)
        if data is None:
            return []
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return data.get("content") or data.get("data") or []
        return []
