"""Shared fixtures."""

import pytest
import pytest_asyncio

from helpers import FakeClock

from cosmicwatch.backend.store import AsteroidStore


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def store():
    asteroid_store = AsteroidStore.from_url("sqlite+aiosqlite:///:memory:")
    await asteroid_store.create_schema()
    yield asteroid_store
    await asteroid_store.dispose()
