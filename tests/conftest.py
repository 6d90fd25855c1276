"""Shared test fixtures for tablesync."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tablesync.config import Settings
from tablesync.main import create_app
from tablesync.models.base import Base
from tablesync.services.auth_service import create_access_token, grant_authorities
from tablesync.services.permission_service import RequestContext
from tablesync.services.role_graph import AuthorityGraph

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

TEST_SECRET_KEY = "test-secret-key-with-at-least-32-characters"
TEST_APP_ID = "default"


@asynccontextmanager
async def create_test_client(
    settings: Settings,
    users: dict[str, list[str]] | None = None,
    raise_app_exceptions: bool = True,
) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (DB schema, admin
    user) because ASGITransport does not trigger it. ``users`` maps extra
    usernames to their direct grants. Pass ``raise_app_exceptions=False`` to
    inspect the 500 response of an unhandled exception instead of re-raising it.
    """
    from tablesync.database import create_engine as create_db_engine
    from tablesync.services.auth_service import ensure_admin_user

    app = create_app(settings)
    settings.validate_runtime_security()

    engine, session_factory = create_db_engine(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.settings = settings

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        await ensure_admin_user(session, settings)
        for username, authorities in (users or {}).items():
            await grant_authorities(session, username, authorities)

    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions),
        base_url="http://test",
    ) as ac:
        yield ac

    await engine.dispose()


def auth_headers(username: str = "admin", secret_key: str = TEST_SECRET_KEY) -> dict[str, str]:
    """Bearer Authorization header for ``username``."""
    token = create_access_token({"sub": username}, secret_key)
    return {"Authorization": f"Bearer {token}"}


def make_context(
    authorities: Iterable[str] = ("GROUP_SITE_ADMINS",),
    app_id: str = TEST_APP_ID,
    username: str = "admin",
    settings: Settings | None = None,
) -> RequestContext:
    """Request context with ``authorities`` expanded through the role hierarchy."""
    hierarchy = (settings or Settings()).role_hierarchy
    graph = AuthorityGraph.from_mapping(hierarchy)
    return RequestContext(
        app_id=app_id,
        username=username,
        authorities=frozenset(graph.reachable(authorities)),
    )


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with temporary paths."""
    db_path = tmp_path / "test.db"
    return Settings(
        secret_key=TEST_SECRET_KEY,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
    )


@pytest.fixture
def admin_ctx() -> RequestContext:
    return make_context()


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the schema in place."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
