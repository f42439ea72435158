import time
import uuid
import logging
from typing import Dict, Optional
from fastapi import Request, HTTPException
import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

class RateLimiter:
    """
    Sliding-window rate limiter backed by Redis sorted sets, shared by all workers.
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis],
        default_limit: int = 10,
        window_seconds: int = 60,
        scope_limits: Optional[Dict[str, int]] = None,
    ):
        self.redis_client = redis_client
        self.default_limit = default_limit
        self.window_seconds = window_seconds
        self.scope_limits = dict(scope_limits or {})

    async def is_allowed(self, key: str, limit: Optional[int] = None) -> bool:
        """
        Check if request is allowed based on rate limit.

        Args:
            key: Unique identifier for rate limiting (e.g., user_id, ip_address)
            limit: Custom limit for this check (uses default if None)

        Returns:
            True if request is allowed, False if rate limited
        """
        if not self.redis_client:
            logger.warning("Redis not available, skipping rate limiting")
            return True

        limit = limit or self.default_limit
        now = time.time()
        window_start = now - self.window_seconds
        # Unique member so two hits within the same second both count.
        member = f"{now}:{uuid.uuid4().hex}"

        try:
            pipe = self.redis_client.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zadd(key, {member: now})
            pipe.expire(key, self.window_seconds)

            results = await pipe.execute()
            current_count = results[1]  # Count after cleanup, before this hit

            is_allowed = current_count < limit
            if not is_allowed:
                logger.warning(f"Rate limit exceeded for key {key}: {current_count}/{limit}")
            return is_allowed

        except RedisError as e:
            # Fail open: an unavailable limiter must not block signups and logins.
            logger.error(f"Rate limiting error for key {key}: {e}")
            return True

# Global rate limiter instance
_rate_limiter: Optional[RateLimiter] = None

def get_rate_limiter() -> Optional[RateLimiter]:
    """Get the global rate limiter instance."""
    return _rate_limiter

def setup_rate_limiter(
    redis_client: Optional[redis.Redis],
    default_limit: int = 10,
    window_seconds: int = 60,
    scope_limits: Optional[Dict[str, int]] = None,
):
    """Setup the global rate limiter."""
    global _rate_limiter
    _rate_limiter = RateLimiter(redis_client, default_limit, window_seconds, scope_limits)
    logger.info(f"Rate limiter configured: {default_limit} requests per {window_seconds} seconds")

def reset_rate_limiter():
    global _rate_limiter
    _rate_limiter = None

async def check_rate_limit(request: Request, limit: Optional[int] = None, scope: str = "default") -> bool:
    """
    Check rate limit for a request, keyed by client IP and scope.

    Raises:
        HTTPException: If rate limit is exceeded
    """
    rate_limiter = get_rate_limiter()
    if not rate_limiter:
        return True

    client_ip = request.client.host if request.client else "unknown"
    limit = limit or rate_limiter.scope_limits.get(scope)

    is_allowed = await rate_limiter.is_allowed(f"rate_limit:{scope}:{client_ip}", limit)

    if not is_allowed:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Please try again later."
        )

    return True

def rate_limit_dependency(limit: Optional[int] = None, scope: str = "default"):
    """
    Create a FastAPI dependency enforcing ``limit`` requests per window for ``scope``.
    """
    async def _rate_limit_check(request: Request):
        await check_rate_limit(request, limit, scope)
        return True

    return _rate_limit_check
