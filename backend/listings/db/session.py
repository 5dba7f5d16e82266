"""
Database management utilities
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from listings.core.config import Settings
from listings.core.logging import get_logger
from listings.db.models import Base

logger = get_logger(__name__)


def get_engine(settings: Settings, database_url: Optional[str] = None) -> AsyncEngine:
    """Create SQLAlchemy async engine with the given database URL"""
    database_url = database_url or settings.get_database_url

    if database_url.startswith("sqlite"):
        # SQLite has no connection pool sizing
        return create_async_engine(database_url, echo=settings.DB_ECHO)

    return create_async_engine(
        database_url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=1800
    )


class Database:
    """
    Owns the engine and session factory for one process.

    Constructed once at bootstrap and handed to the services that need it.
    """

    def __init__(self, settings: Settings, database_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        self.engine = engine or get_engine(settings, database_url)
        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    async def create_all(self) -> None:
        """Create all tables"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")

    async def drop_all(self) -> None:
        """Drop all tables - use with caution!"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database cleaned up successfully")

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an async database session with automatic cleanup"""
        session = self.session_maker()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Database error", error=str(e))
            raise
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()
