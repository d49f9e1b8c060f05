import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.database.models import Base
from src.utils.settings.database import DatabaseSettings

logger = logging.getLogger(__name__)


def create_engine_from_settings(
    settings: DatabaseSettings | None = None,
) -> AsyncEngine | None:
    """Build the async engine, or None when no database is configured."""
    settings = settings or DatabaseSettings()
    url = settings.DATABASE_URL_ASYNC
    if url is None:
        return None

    connect_args = {"ssl": "require"} if settings.DATABASE_SSL else {}
    return create_async_engine(
        url, echo=False, pool_pre_ping=True, connect_args=connect_args
    )


def create_session_factory(
    engine: AsyncEngine | None,
) -> async_sessionmaker[AsyncSession] | None:
    if engine is None:
        return None
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create the audit tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def get_async_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Get asynchronous database session."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
