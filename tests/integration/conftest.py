"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Pre-condition: PostgreSQL + Redis from .env, `alembic upgrade head`,
CARRIER_MODE=simulated. The whole directory is skipped when PostgreSQL
is unreachable.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.ff_common.database import engine
from src.main import app


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client; keeps the engine pool alive."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except OSError as exc:
        pytest.skip(f"PostgreSQL not reachable: {exc}")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def brand_id() -> str:
    """Fresh brand per test; wallets and stock records are created lazily."""
    return f"it-{uuid.uuid4().hex[:10]}"
