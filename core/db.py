from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, Integer
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from core.config import settings


def build_engine(url: str | None = None) -> AsyncEngine:
    """Create the async engine for the configured database."""
    url = url or settings.database_url
    kwargs: dict[str, Any] = {"echo": settings.is_development and not url.startswith("sqlite")}
    if not url.startswith("sqlite"):
        # Every operation is one serializable transaction
        kwargs.update(
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=20,
            isolation_level=settings.db_isolation_level,
        )
    return create_async_engine(url, **kwargs)


# Create async engine
engine = build_engine()

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


# SQLite only autoincrements INTEGER primary keys
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
