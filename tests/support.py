"""
Test doubles shared by the unit, integration and API suites
"""

import math
from collections import deque
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from sqlalchemy import select

from core.database import LocalStore
from replication.client import RemoteAPIClient
from replication.orchestrator import SyncOrchestrator
from replication.retry import RetryExecutor

# In-memory SQLite, one shared connection per store
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BASE_URL = "https://flex.test"
API_TOKEN = "test-token"


class SleepRecorder:
    """Drop-in for asyncio.sleep that records delays instead of waiting"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


class FakeFlexAPI:
    """
    In-memory stand-in for the remote API, served through httpx.MockTransport.

    - paged[path]        records served as {totalElements, totalPages, content}
    - node_lists[path]   {parent_id: [records]} served as a bare list
    - details[path]      {remote_id: record} served at path/{remote_id}
    - scripted[path]     queue of status codes returned before normal handling

    ``max_page_size`` caps the page size the way the live remote does for
    oversized requests.
    """

    def __init__(self, token: Optional[str] = API_TOKEN, max_page_size: Optional[int] = None):
        self.token = token
        self.max_page_size = max_page_size
        self.paged: Dict[str, List[Dict[str, Any]]] = {}
        self.node_lists: Dict[str, Dict[str, List[Dict[str, Any]]]] = {}
        self.details: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.scripted: Dict[str, deque] = {}
        self.calls: List[Tuple[str, Dict[str, str]]] = []
        self.on_request: Optional[Callable[[str, Dict[str, str]], None]] = None

    def add_paged(self, path: str, records: List[Dict[str, Any]]):
        self.paged[path] = records

    def add_details(self, path: str, records: List[Dict[str, Any]], id_field: str = "id"):
        self.details.setdefault(path, {}).update({str(r[id_field]): r for r in records})

    def add_node_list(self, path: str, parent_id: str, records: List[Dict[str, Any]]):
        self.node_lists.setdefault(path, {})[parent_id] = records

    def script(self, path: str, *statuses: int):
        self.scripted.setdefault(path, deque()).extend(statuses)

    def calls_to(self, prefix: str) -> List[str]:
        return [path for path, _ in self.calls if path.startswith(prefix)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        params = dict(request.url.params)
        self.calls.append((path, params))
        if self.on_request is not None:
            self.on_request(path, params)

        if self.token is not None and request.headers.get("X-Auth-Token") != self.token:
            return httpx.Response(401, json={"error": "unauthorized"})

        queue = self.scripted.get(path)
        if queue:
            return httpx.Response(queue.popleft(), json={"error": "scripted"})

        if path in self.paged:
            records = self.paged[path]
            page = int(params.get("page", 0))
            size = int(params.get("size", 100))
            if self.max_page_size:
                size = min(size, self.max_page_size)
            return httpx.Response(200, json={
                "totalElements": len(records),
                "totalPages": math.ceil(len(records) / size),
                "number": page,
                "content": records[page * size:(page + 1) * size],
            })

        if path in self.node_lists:
            parent_id = params.get("modelId")
            return httpx.Response(200, json=self.node_lists[path].get(parent_id, []))

        base, _, remote_id = path.rpartition("/")
        record = self.details.get(base, {}).get(remote_id)
        if record is None:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(200, json=record)


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    sleep: SleepRecorder,
    max_retries: int = 3,
    api_key: str = API_TOKEN
) -> RemoteAPIClient:
    executor = RetryExecutor(
        max_retries=max_retries,
        base_delay=1.0,
        throttle_delay=10.0,
        max_delay=60.0,
        sleep=sleep
    )
    return RemoteAPIClient(
        base_url=BASE_URL,
        api_key=api_key,
        executor=executor,
        transport=httpx.MockTransport(handler)
    )


def make_orchestrator(store: LocalStore, client: RemoteAPIClient, sleep: SleepRecorder) -> SyncOrchestrator:
    return SyncOrchestrator(store, client, request_delay=0.3, progress_every=10, sleep=sleep)


async def fetch_row(store: LocalStore, model, remote_id: str):
    async with store.session() as session:
        result = await session.execute(select(model).where(model.remote_id == remote_id))
        return result.scalar_one_or_none()


async def fetch_all(store: LocalStore, model) -> list:
    async with store.session() as session:
        result = await session.execute(select(model).order_by(model.id))
        return list(result.scalars().all())


