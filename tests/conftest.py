"""Shared test fixtures: in-memory database, app client and auth overrides.

Redis is never initialized here, so caches and economy locks run in their
degraded (no Redis) mode.
"""

import os

# Never hit a real platform or database from tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SUPABASE_URL", "")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import indigo_api.models  # noqa: F401
from indigo_api.main import app
from indigo_api.routes.deps import game_user_id, optional_user_id, require_user_id
import indigo_api.stores.postgres as postgres
from indigo_api.stores.postgres import Base


@pytest.fixture
async def db(monkeypatch: pytest.MonkeyPatch):
    """Fresh in-memory database wired into `get_session()`."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(postgres, "_session_factory", factory)
    yield factory
    await engine.dispose()


@pytest.fixture
async def client(db):
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Act as `user_id` on every authenticated route (None = anonymous)."""

    def _login(user_id: str | None) -> None:
        if user_id is None:
            for dep in (require_user_id, game_user_id, optional_user_id):
                app.dependency_overrides.pop(dep, None)
            return
        app.dependency_overrides[require_user_id] = lambda: user_id
        app.dependency_overrides[game_user_id] = lambda: user_id
        app.dependency_overrides[optional_user_id] = lambda: user_id

    yield _login
    app.dependency_overrides.clear()

