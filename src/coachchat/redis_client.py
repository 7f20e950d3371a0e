"""Redis connection pool and small key helpers shared by the API."""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client (FastAPI dependency)."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


def get_redis_or_none() -> redis.Redis | None:
    """The Redis client, or None when Redis is not initialized."""
    return _pool


async def claim_once(client: redis.Redis, key: str, ttl_seconds: int) -> bool:
    """Atomically claim ``key`` for ``ttl_seconds``.

    Returns True for the first caller only; every later caller inside the
    TTL gets False. Used to drop redelivered webhook events.
    """
    claimed = await client.set(key, "1", nx=True, ex=ttl_seconds)
    return bool(claimed)
