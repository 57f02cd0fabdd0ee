"""
Database engine and session management.

The SQL feed sources open one short session per call, so concurrent reads
inside a refill never share an AsyncSession. FastAPI routes get either a
request-scoped session or the factory itself.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from sweetfeed.config import settings
from sweetfeed.models.db import Base


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the options every caller expects."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_factory = build_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a request-scoped database session.

    Commits on success, rolls back on database errors.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency that provides the session factory for the SQL feed sources."""
    return async_session_factory


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Create all tables defined in the ORM models.

    Called once at application startup.
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(bind: AsyncEngine | None = None) -> None:
    """
    Drop all tables.

    WARNING: Destroys all data. Use only for testing.
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
