"""Redis client used for request rate limiting"""
import logging

import redis

from scholarstream.core.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


def ping() -> bool:
    """Check connectivity (used at startup)"""
    return bool(get_redis_client().ping())


def increment_rate_limit(identifier: str, window: int) -> int:
    """Increment rate limit counter and return current count.
    Uses Lua script to atomically increment and set TTL only for new keys (fixed window rate limiting)."""
    key = f"ratelimit:{identifier}"

    lua_script = """
    local count = redis.call('INCR', KEYS[1])
    if count == 1 then
        redis.call('EXPIRE', KEYS[1], ARGV[1])
    end
    return count
    """

    count = get_redis_client().eval(lua_script, 1, key, window)
    return int(count)


def check_rate_limit(identifier: str, strict: bool = False) -> bool:
    """Check if request is within rate limit using Redis. Returns True if allowed, False if rate limited."""
    window = settings.RATE_LIMIT_STRICT_WINDOW if strict else settings.RATE_LIMIT_WINDOW
    max_requests = settings.RATE_LIMIT_STRICT_REQUESTS if strict else settings.RATE_LIMIT_REQUESTS

    # Strict and lenient buckets are counted separately
    bucket = f"{identifier}:strict" if strict else identifier
    current_count = increment_rate_limit(bucket, window)

    return current_count <= max_requests
