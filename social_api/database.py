"""
Async SQLAlchemy engine + session factory.

Production runs against a MySQL-protocol server through the aiomysql driver.
The engine is created once at import time and reused across all requests;
every request gets its own session, committed when the handler returns.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from social_api.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=20,
    max_overflow=10,
    echo=False,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create all tables if they don't exist (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def get_db():
    """FastAPI dependency that yields an async DB session.

    Everything a handler writes lands in one transaction: committed on
    success, rolled back if the handler raises. Routes declare it with
    ``Depends(get_db, scope="function")`` so the commit happens before the
    response is sent and a failed commit surfaces as a 500.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
