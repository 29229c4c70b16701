"""Sliding-window rate limiter backed by a Redis sorted set."""

import time
import uuid

import redis.asyncio as redis


async def hit(client: redis.Redis, key: str, limit: int, window_seconds: int) -> bool:
    """
    Record one event and report whether it fits in the rolling window.

    The event is added first and removed again when it overflows the limit, so
    concurrent callers on different instances cannot both squeeze in the last slot.

    Args:
        client: Redis client
        key: Per-subject window key, e.g. "rl:msg:42"
        limit: Maximum events per window
        window_seconds: Window length

    Returns:
        True if the event is allowed
    """
    now = time.time()
    member = f"{now:.6f}:{uuid.uuid4().hex}"

    async with client.pipeline(transaction=True) as pipe:
        pipe.zremrangebyscore(key, 0, now - window_seconds)
        pipe.zadd(key, {member: now})
        pipe.zcard(key)
        pipe.expire(key, window_seconds)
        _, _, count, _ = await pipe.execute()

    if count > limit:
        await client.zrem(key, member)
        return False
    return True
