"""slowapi limiter for the dispatch API.

Limits are counted per signed-in operator (the session user id) and fall
back to the client address for anonymous calls. Counters live in Redis
when CACHE_BACKEND=redis and the server answers a ping, otherwise in memory.
"""

import redis
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from .config import settings

MEMORY_STORAGE = "memory://"


def operator_key(request: Request) -> str:
    session = request.scope.get("session") or {}
    uid = session.get("user_id")
    return f"user:{uid}" if uid else get_remote_address(request)


def _resolve_storage() -> str:
    if settings.cache_backend != "redis" or not settings.redis_url:
        return MEMORY_STORAGE
    try:
        redis.from_url(settings.redis_url, socket_connect_timeout=2).ping()
    except (redis.RedisError, ValueError) as e:
        logger.warning("Rate limit counters kept in memory; Redis unusable: {}", e)
        return MEMORY_STORAGE
    logger.info("Rate limit counters stored in Redis")
    return settings.redis_url


limiter = Limiter(
    key_func=operator_key,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
    storage_uri=_resolve_storage(),
)
