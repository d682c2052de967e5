"""
Redis client wrapper.

Responsibilities:
  • Rate-limit windows — integer counter keyed by ratelimit:{client}:{window}
                         expires with the window so old buckets vanish

The API initialises the connection at startup; request handlers reach it
through get_redis().
"""
import logging
import time
from typing import Optional

import redis.asyncio as aioredis

from social_api.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


# ─────────────────────── Rate-limit Windows ───────────────────────────────

def _window_key(client_id: str, window_seconds: int, now: float) -> str:
    return f"ratelimit:{client_id}:{int(now // window_seconds)}"


async def hit_rate_window(
    client_id: str, window_seconds: int, now: float | None = None
) -> int:
    """
    Count one request for `client_id` in the current fixed window and return
    the number of requests seen so far in that window (including this one).
    """
    r = get_redis()
    if now is None:
        now = time.time()
    key = _window_key(client_id, window_seconds, now)
    pipe = r.pipeline()
    pipe.incr(key)
    pipe.expire(key, window_seconds)
    count, _ = await pipe.execute()
    return int(count)
