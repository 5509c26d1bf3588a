"""Async SQLAlchemy engine and session factory.

Handles are built once by the caller and passed to the components that
need them; nothing here connects at import time.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .settings import Settings, get_settings

# SQLAlchemy base for models
Base = declarative_base()


def create_engine(settings: Optional[Settings] = None, url: Optional[str] = None) -> AsyncEngine:
    """Create the async engine for the configured datastore."""
    settings = settings or get_settings()
    url = url or settings.db_url
    
    options = {"echo": settings.debug}
    if not url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=20)
    
    return create_async_engine(url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session maker bound to ``engine``; objects stay readable after commit."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables in the database."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all(engine: AsyncEngine) -> None:
    """Drop all tables in the database."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
