"""Redis client construction."""

import redis.asyncio as redis


def create_redis(url: str) -> redis.Redis:
    """Build a pooled Redis client. The caller owns it and must ``close_redis`` it."""
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis(client: redis.Redis | None) -> None:
    """Close the Redis connection pool, if one was opened."""
    if client is not None:
        await client.aclose()
