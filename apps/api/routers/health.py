"""Liveness and readiness endpoints for the orchestrator."""

import redis.asyncio as redis
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db, get_redis_client

router = APIRouter()


async def _check_db(db: AsyncSession) -> str | None:
    try:
        await db.execute(text("SELECT 1"))
        return None
    except Exception as e:
        return str(e)


async def _check_redis(redis_client: redis.Redis) -> str | None:
    try:
        await redis_client.ping()
        return None
    except Exception as e:
        return str(e)


@router.get("/")
async def liveness() -> dict[str, str]:
    """Process is up."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    response: Response,
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis_client),
) -> dict[str, str]:
    """
    Both substrates reachable.

    Responds 503 when either the database or Redis is down so the instance is
    taken out of rotation; the queue and rate limiter cannot work without them.
    """
    db_error = await _check_db(db)
    redis_error = await _check_redis(redis_client)

    body = {
        "database": "connected" if db_error is None else f"disconnected: {db_error}",
        "redis": "connected" if redis_error is None else f"disconnected: {redis_error}",
    }
    if db_error or redis_error:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", **body}
    return {"status": "healthy", **body}


@router.get("/db")
async def database_health(response: Response, db: AsyncSession = Depends(get_db)) -> dict[str, str]:
    """Database health check."""
    error = await _check_db(db)
    if error is not None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "database": "disconnected", "error": error}
    return {"status": "healthy", "database": "connected"}


@router.get("/redis")
async def redis_health(response: Response, redis_client: redis.Redis = Depends(get_redis_client)) -> dict[str, str]:
    """Redis health check."""
    error = await _check_redis(redis_client)
    if error is not None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "redis": "disconnected", "error": error}
    return {"status": "healthy", "redis": "connected"}
