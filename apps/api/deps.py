"""FastAPI dependencies."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import Identity, identity_auth
from core.db import get_db as _get_db
from core.redis import get_redis as _get_redis
from models import User
from services import users


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async for session in _get_db():
        yield session


async def get_redis_client() -> redis.Redis:
    """Get Redis client dependency."""
    return await _get_redis()


async def get_caller(
    identity: Identity = Depends(identity_auth), db: AsyncSession = Depends(get_db)
) -> User:
    """Resolve the caller's directory record, creating it on first use (mutations)."""
    return await users.get_or_create(db, identity)


async def get_existing_caller(
    identity: Identity = Depends(identity_auth), db: AsyncSession = Depends(get_db)
) -> User:
    """Resolve the caller's directory record; NotFound if it was never created (queries)."""
    return await users.require_user(db, identity)
