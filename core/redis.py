"""Shared Redis client and the key layout used on it.

Redis only carries ephemeral state: typing signals, rate-limit windows and
pub/sub change events. Losing it never loses chat data.
"""

import redis.asyncio as redis

from core.config import settings

_redis_client: redis.Redis | None = None


def typing_key(session_id: int, user_id: int) -> str:
    return f"typing:{session_id}:{user_id}"


def message_rate_key(user_id: int) -> str:
    return f"rl:msg:{user_id}"


def session_channel(session_id: int) -> str:
    return f"session:{session_id}"


def user_channel(user_id: int) -> str:
    return f"user:{user_id}"


async def get_redis() -> redis.Redis:
    """Get the shared client, connecting lazily on first use."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            health_check_interval=30,
        )
    return _redis_client


def set_redis(client: redis.Redis | None) -> None:
    """Replace the shared client (used by tests and the worker entrypoints)."""
    global _redis_client
    _redis_client = client


async def close_redis() -> None:
    """Close the shared client if one was opened."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
