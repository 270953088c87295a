"""Optional Redis connection.

Auth state lives in MongoDB; Redis is only pinged by /health (and can back
the rate limiter through RATE_LIMIT_STORAGE_URI, which the limits library
connects to on its own). A failed connection is logged and yields None.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shared.logging import get_logger

log = get_logger(__name__)


def _display_uri(redis_uri: str) -> str:
    # Drop credentials before logging
    return redis_uri.rsplit("@", 1)[-1]


async def create_redis_client(
    redis_uri: str, *, connect_timeout: float = 2.0
) -> Optional[aioredis.Redis]:
    client: aioredis.Redis = aioredis.from_url(
        redis_uri,
        decode_responses=True,
        socket_connect_timeout=connect_timeout,
    )
    try:
        await client.ping()
    except RedisError as e:
        log.warning(
            "redis_connection_failed",
            uri=_display_uri(redis_uri),
            error=str(e),
            error_type=type(e).__name__,
        )
        await client.aclose()
        return None
    log.info("redis_connected", uri=_display_uri(redis_uri))
    return client
