"""
Shared fixtures for bottomless tests.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from dbaas.bottomless.generation import GenerationClock
from dbaas.bottomless.keys import PAGE_SIZE, page_key
from dbaas.bottomless.storage.memory import InMemoryObjectStore


def make_page(fill: int) -> bytes:
    """A full page filled with one byte value."""
    return bytes([fill]) * PAGE_SIZE


def utc(year, month, day, hour=12):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return GenerationClock()


@pytest_asyncio.fixture
async def store():
    """Connected in-memory store with small listing pages."""
    store = InMemoryObjectStore(max_keys=2)
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def seed_generation(store, clock):
    """Create a generation with the given pages directly in the store."""

    def _seed(db_name, created_at, pages=None):
        generation = clock.mint(created_at)
        if pages is None:
            pages = {0: make_page(1)}
        for page_no, data in pages.items():
            store.set_object(page_key(db_name, generation, page_no), data)
        return generation

    return _seed
