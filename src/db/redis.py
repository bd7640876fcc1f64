from redis.asyncio import Redis

from config.settings import settings


def create_redis(url: str | None = None) -> Redis:
    """Build a Redis client for the cache service.

    Connection is lazy: nothing touches the network until the first command.
    """
    return Redis.from_url(url or settings.redis_url, decode_responses=True)
