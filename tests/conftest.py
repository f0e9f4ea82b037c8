"""Pytest configuration and fixtures for registry and API tests."""
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from httpx import ASGITransport, AsyncClient

from registry.enums import SupportedGame
from registry.models import User
from registry.models.base import Base, async_session_factory, engine, init_db
from registry.models.user import empty_roles
from registry.services.game_versions import create_game_version
from registry.services.maintenance import SERVER_ACCOUNT_ID, ensure_server_admin
from web.api.main import app, cache
from web.auth import create_access_token


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh schema, server account and cache for each test (ASGI lifespan doesn't run with httpx)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await init_db()
    async with async_session_factory() as session:
        await ensure_server_admin(session)
    await cache.refresh()
    yield


@pytest.fixture
async def client():
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def session():
    """Bare session for service-level tests. Don't hold it across API calls."""
    async with async_session_factory() as s:
        yield s


async def create_user(username: str, sitewide=(), per_game=None) -> User:
    roles = empty_roles()
    roles["sitewide"] = list(sitewide)
    roles["per_game"] = dict(per_game or {})
    async with async_session_factory() as session:
        user = User(username=username, display_name=username, roles=roles)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


def headers_for(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def make_user():
    return create_user


@pytest.fixture
def make_headers():
    return headers_for


@pytest.fixture
def admin_headers():
    """Headers for the built-in server admin."""
    return headers_for(SERVER_ACCOUNT_ID)


@pytest.fixture
async def author():
    return await create_user("author")


@pytest.fixture
async def approver():
    return await create_user("approver", per_game={SupportedGame.BEAT_SABER.value: ["approver"]})


@pytest.fixture
async def game_version():
    """BeatSaber 1.29.1, the game's first and therefore default version."""
    async with async_session_factory() as session:
        return await create_game_version(session, SupportedGame.BEAT_SABER.value, "1.29.1")
