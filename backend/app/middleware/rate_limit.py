"""
Redis-backed sliding window rate limiter for the query endpoints.

Every query costs an LLM call, so POSTs under /api/query are limited per
client per minute. Redis being unreachable means the limiter passes
requests through. A limit of 0 disables the middleware.
"""

import time
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

import redis.asyncio as aioredis

from app.config import settings

logger = logging.getLogger(__name__)

LIMITED_PREFIX = "/api/query"
LIMITED_METHODS = frozenset({"POST"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limit: int | None = None, window: int = 60):
        super().__init__(app)
        self._redis: aioredis.Redis | None = None
        self.limit = settings.rate_limit_per_minute if limit is None else limit
        self.window = window

    async def _get_redis(self) -> aioredis.Redis | None:
        if self._redis is None:
            try:
                self._redis = aioredis.from_url(settings.redis_url, decode_responses=True)
                await self._redis.ping()
            except Exception as exc:
                logger.warning("Rate limiter: Redis unavailable (%s), passing through", exc)
                self._redis = None
        return self._redis

    def _client_key(self, request: Request) -> str:
        # Prefer the bearer token so users behind one proxy don't share a bucket
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            return f"ratelimit:query:token:{auth[7:][-32:]}"
        client_ip = request.client.host if request.client else "unknown"
        return f"ratelimit:query:ip:{client_ip}"

    async def dispatch(self, request: Request, call_next):
        if (
            self.limit <= 0
            or request.method not in LIMITED_METHODS
            or not request.url.path.startswith(LIMITED_PREFIX)
        ):
            return await call_next(request)

        r = await self._get_redis()
        if r is None:
            return await call_next(request)

        now = time.time()
        key = self._client_key(request)

        try:
            pipe = r.pipeline()
            pipe.zremrangebyscore(key, 0, now - self.window)
            pipe.zadd(key, {str(now): now})
            pipe.zcard(key)
            pipe.expire(key, self.window)
            results = await pipe.execute()
            request_count = results[2]
        except Exception as exc:
            logger.warning("Rate limiter Redis error: %s", exc)
            return await call_next(request)

        if request_count > self.limit:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many queries. Please try again later."},
                headers={"Retry-After": str(self.window)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.limit - request_count))
        return response
