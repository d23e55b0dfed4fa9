"""Pytest configuration and fixtures."""

import pytest
import pytest_asyncio

from answer_core.memory_store import MemoryStore
from answer_core.sqlite_store import SQLiteStore


@pytest.fixture
def memory_store():
    """Empty in-memory store without snapshot persistence."""
    return MemoryStore()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    """Open SQLite store backed by a temporary file."""
    store = SQLiteStore(str(tmp_path / "answernet.db"))
    await store.open()
    yield store
    await store.close()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    """Each test using this fixture runs once per backend."""
    if request.param == "memory":
        backend = MemoryStore()
    else:
        backend = SQLiteStore(str(tmp_path / "answernet.db"))
    await backend.open()
    yield backend
    await backend.close()
