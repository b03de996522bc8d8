"""
Async SQLAlchemy engine, session factory, and FastAPI dependency.

The ORM owns organizations, users, memberships, integrations and posts.
The stores in app.core receive a session from ``get_db`` and never
create their own.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async database session."""
    async with async_session_factory() as session:
        yield session


async def ping_database(db_engine: AsyncEngine = engine) -> int:
    """Run ``SELECT 1`` on a pooled connection. Raises on connectivity errors."""
    async with db_engine.connect() as conn:
        result = await conn.execute(text("SELECT 1"))
        return result.scalar_one()
