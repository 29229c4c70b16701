"""Shared fixtures: in-memory SQLite database and fake Redis per test."""

import os

# Must be set before core.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("IDENTITY_SHARED_SECRET", "test-identity-secret")
os.environ.setdefault("IDENTITY_WEBHOOK_SECRET", "test-webhook-secret")

from collections.abc import AsyncGenerator

import fakeredis
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from core.auth import Identity
from core.db import Base
from core.redis import set_redis
from models import User
from services import users


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
async def fake_redis() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    await client.flushall()
    set_redis(client)
    yield client
    set_redis(None)
    await client.aclose()


@pytest.fixture
def make_user(db: AsyncSession):
    """Create and commit a directory record for a subject."""

    async def _make(subject: str, **profile) -> User:
        user = await users.get_or_create(db, Identity(subject=subject, name=subject.title()))
        for field, value in profile.items():
            setattr(user, field, value)
        await db.commit()
        return user

    return _make


@pytest.fixture
def pair(db: AsyncSession, make_user):
    """Two users paired through the queue; returns (user_a, user_b, session_id)."""
    from services import queue

    async def _pair(first: str = "alice", second: str = "bob") -> tuple[User, User, int]:
        a = await make_user(first)
        b = await make_user(second)
        await queue.join(db, a)
        result = await queue.join(db, b)
        assert result["matched"] is True
        return a, b, result["session_id"]

    return _pair
