# This project was developed with assistance from AI tools.
"""Async engine, session factory and the FastAPI session dependency.

The engine is created lazily by SQLAlchemy on first connect, so importing
this module never touches the network.
"""

from collections.abc import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .config import db_settings

Base = declarative_base()


def _async_url(url: str) -> str:
    """Force the asyncpg driver onto plain postgres URLs (shared with Alembic)."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://"):]
    return url


engine: AsyncEngine = create_async_engine(
    _async_url(db_settings.DATABASE_URL),
    echo=db_settings.SQL_ECHO,
    pool_pre_ping=True,
)

SessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


class DatabaseService:
    """Thin wrapper over an engine for health checks and shutdown."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1

    async def dispose(self) -> None:
        await self.engine.dispose()


db_service = DatabaseService(engine=engine)


def get_db_service() -> DatabaseService:
    return db_service


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request, rolled back on error."""
    async with SessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
