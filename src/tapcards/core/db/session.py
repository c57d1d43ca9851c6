"""Database session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.tapcards.core.db.engine import get_engine


@asynccontextmanager
async def get_session(engine: AsyncEngine | None = None) -> AsyncGenerator[AsyncSession]:
    """Create a database session.

    Sessions never auto-commit; the service that owns the unit of work
    commits or rolls back explicitly.
    """
    if engine is None:
        engine = get_engine()

    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@asynccontextmanager
async def get_isolated_session() -> AsyncGenerator[AsyncSession]:
    """Session on its own connection, independent of the request transaction.

    Used for writes that must survive a rollback of the primary unit of work
    (audit records, claim attempts).
    """
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        yield session
