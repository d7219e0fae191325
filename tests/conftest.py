"""
Pytest configuration and fixtures
"""

from typing import Any, Dict, List

import pytest
import pytest_asyncio

from core.database import LocalStore
from tests.support import (
    TEST_DATABASE_URL,
    FakeFlexAPI,
    SleepRecorder,
    make_client,
)


@pytest_asyncio.fixture(scope="function")
async def store():
    """Open in-memory store with every table created"""
    async with LocalStore(TEST_DATABASE_URL) as local_store:
        await local_store.create_schema()
        yield local_store


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_api() -> FakeFlexAPI:
    return FakeFlexAPI()


@pytest_asyncio.fixture(scope="function")
async def api_client(fake_api, sleeper):
    """RemoteAPIClient wired to the fake API"""
    async with make_client(fake_api, sleeper) as client:
        yield client


@pytest.fixture
def contact_records() -> List[Dict[str, Any]]:
    """List-shaped contact records"""
    return [
        {"id": f"c{i:03d}", "name": f"Contact {i}", "contactType": "customer", "status": "active"}
        for i in range(1, 13)
    ]


@pytest.fixture
def contact_details(contact_records) -> List[Dict[str, Any]]:
    """Detail-shaped contact records (one per listed contact)"""
    return [
        {
            **record,
            "firstName": f"First{index}",
            "lastName": f"Last{index}",
            "email": f"contact{index}@example.com",
            "pricingModel": {"id": "pm1", "name": "Standard"},
            "deleted": False,
        }
        for index, record in enumerate(contact_records, 1)
    ]
