"""
Database connection management
"""
import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from fileshare.config import get_settings
from fileshare.database.models.base import BaseModel

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker] = None

# Base для моделей (импортируем из моделей)
Base = BaseModel


def get_engine() -> AsyncEngine:
    """
    Ленивое создание async engine.

    Для SQLite параметры пула не передаются (aiosqlite использует свой пул).
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        url = settings.database_url
        kwargs = {"echo": settings.DEBUG and settings.ENVIRONMENT == "development"}
        if not url.startswith("sqlite"):
            kwargs.update(
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                pool_pre_ping=True,
            )
        _engine = create_async_engine(url, **kwargs)
    return _engine


def get_session_maker() -> async_sessionmaker:
    """Session factory, привязанная к engine."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_maker


async def init_db(create_tables: bool = False) -> None:
    """Инициализация базы данных"""
    try:
        async with get_engine().begin() as conn:
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def close_db() -> None:
    """Закрытие соединения с базой данных"""
    global _engine, _session_maker
    if _engine is None:
        return
    try:
        await _engine.dispose()
        logger.info("Database connection closed")
    except Exception as e:
        logger.error(f"Failed to close database connection: {e}")
    finally:
        _engine = None
        _session_maker = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency для получения сессии базы данных"""
    async with get_session_maker()() as session:
        try:
            yield session
        finally:
            await session.close()
