"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path
from uuid import uuid4

import pytest
import pytest_asyncio

# Add tests directory to path so helpers can be imported
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from helpers import FakeClock  # noqa: E402

from hookrelay.config import Settings  # noqa: E402
from hookrelay.storage import RelayStorage  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    """Settings for an in-process store with no API tokens."""
    return Settings(
        env="test",
        qdrant_location=":memory:",
        internal_api_token=None,
        admin_api_token=None,
    )


@pytest.fixture
def clock() -> FakeClock:
    """A controllable clock."""
    return FakeClock()


@pytest_asyncio.fixture
async def storage(settings: Settings):
    """An initialized in-memory RelayStorage."""
    store = RelayStorage(
        location=":memory:",
        prefix=f"test_{uuid4().hex[:8]}",
        settings=settings,
    )
    await store.initialize()
    yield store
    await store.close()
