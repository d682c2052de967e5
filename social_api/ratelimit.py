"""
Fixed-window request limiter, applied as a router dependency.

Each client (by remote address) gets `rate_limit_requests` requests per
`rate_limit_window_seconds`; the counters live in Redis so every API replica
shares the same budget.
"""
import logging

from fastapi import Request

from social_api.clients.redis_client import hit_rate_window
from social_api.config import settings
from social_api.errors import RateLimited
from social_api.telemetry import RATE_LIMITED_TOTAL

logger = logging.getLogger(__name__)


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "anonymous"


async def rate_limit(request: Request) -> None:
    if not settings.rate_limit_enabled:
        return

    client_id = _client_id(request)
    count = await hit_rate_window(client_id, settings.rate_limit_window_seconds)
    if count > settings.rate_limit_requests:
        RATE_LIMITED_TOTAL.inc()
        logger.warning("Rate limit exceeded for %s (%d requests)", client_id, count)
        raise RateLimited("Too many requests, please try again later")
