"""Integration test fixtures for database and HTTP client operations.

Each test gets its own SQLite database file. The engine singleton is swapped
for the test engine so request sessions, audit writes and the attempt
recorder all hit the same database.
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlmodel import SQLModel

import src.tapcards.models  # noqa: F401 - registers tables on the metadata
from src.tapcards.core import db
from src.tapcards.core.db import get_session
from src.tapcards.domain.actor import Actor
from src.tapcards.main import create_app
from src.tapcards.models import MembershipRole, Tenant, User
from src.tapcards.services import ProvisioningEngine
from tests.helpers import actor_for, create_tenant, create_user_with_membership


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine]:
    """Fresh database with every table created from the model metadata."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tapcards.db'}",
        # Writers wait for each other instead of failing with "database is locked"
        connect_args={"timeout": 30},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    db.set_engine(test_engine)
    yield test_engine
    db.set_engine(None)
    await test_engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Provide an async session for setup and assertions.

    Sessions never auto-commit; helpers in tests/helpers.py commit explicitly
    so the engine under test sees their rows.
    """
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
async def engine_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Session owned by the engine under test.

    Kept apart from `db_session` so an engine rollback never expires the
    rows a test set up. Capture ids of objects the engine returned before
    provoking a failure.
    """
    async with get_session(engine) as session:
        yield session


@pytest.fixture
async def provisioning(engine_session: AsyncSession) -> ProvisioningEngine:
    return ProvisioningEngine(engine_session)


@pytest.fixture
async def tenant(db_session: AsyncSession) -> Tenant:
    return await create_tenant(db_session)


@pytest.fixture
async def admin(db_session: AsyncSession, tenant: Tenant) -> User:
    user, _ = await create_user_with_membership(db_session, tenant, role=MembershipRole.ADMIN)
    return user


@pytest.fixture
def admin_actor(admin: User, tenant: Tenant) -> Actor:
    return actor_for(admin, tenant)


@pytest.fixture
async def client(engine: AsyncEngine) -> AsyncGenerator[AsyncClient]:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
