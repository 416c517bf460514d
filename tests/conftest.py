"""Shared test fixtures."""

# ruff: noqa: E402  -- settings are read at import time; env must be set first

import os

os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("JOURNAL_ENABLED", "false")

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.perp_common.database import get_journal_session
from src.perp_engine.dependencies import get_engine_runner
from src.perp_engine.runner import EngineRunner
from tests.helpers import Harness, build_harness


@pytest.fixture
def harness() -> Harness:
    """Fresh in-memory engine with one market at price 2000 and a manual clock."""
    return build_harness()


@pytest.fixture
async def client(harness: Harness) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the harness engine, journal disabled."""
    runner = EngineRunner(harness.engine)

    async def _no_journal() -> AsyncGenerator[None, None]:
        yield None

    app.dependency_overrides[get_engine_runner] = lambda: runner
    app.dependency_overrides[get_journal_session] = _no_journal
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
