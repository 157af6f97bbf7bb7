"""Integration-test conftest — real Postgres fixtures.

Integration tests require:
    STEPWISE_TEST_INTEGRATION=1   (set in shell before running)
    Postgres reachable at STEPWISE_POSTGRES_URL

Run with:
    STEPWISE_TEST_INTEGRATION=1 pytest tests/integration/ -v
"""

from __future__ import annotations

import os

import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def store():
    """A connected TemplateStore; tables are emptied after each test."""
    if not os.getenv("STEPWISE_TEST_INTEGRATION"):
        pytest.skip("Set STEPWISE_TEST_INTEGRATION=1 to run integration tests")

    from stepwise.tools.template_store import TemplateStore

    s = TemplateStore()
    await s.connect()
    yield s
    async with s._pool.acquire() as conn:
        await conn.execute("TRUNCATE steps, templates RESTART IDENTITY CASCADE")
    await s.close()
