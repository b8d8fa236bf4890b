"""Fixed-window rate limiting for shipment booking endpoints.

Redis INCR + EXPIRE per window:
    key = "ratelimit:{brand_or_ip}:shipments"
The caller is identified by the X-Brand-ID header when present, otherwise
by client IP (first X-Forwarded-For hop when behind a proxy).

Exceptions raised inside BaseHTTPMiddleware bypass the app's exception
handlers, so the 429 envelope is rendered here.
"""

import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from config.settings import settings
from src.ff_common.errors import RateLimitError
from src.ff_common.redis_client import get_redis
from src.ff_common.response import error_response

logger = logging.getLogger(__name__)


def client_identity(request: Request) -> str:
    brand_id = request.headers.get("x-brand-id")
    if brand_id:
        return f"brand:{brand_id}"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limit: int | None = None,
        window_seconds: int = 60,
        path_prefix: str = "/api/v1/shipments",
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] | None = None,
    ) -> None:
        super().__init__(app)
        self._limit = limit if limit is not None else settings.SHIPMENT_RATE_LIMIT_PER_MINUTE
        self._window = window_seconds
        self._path_prefix = path_prefix
        self._redis_factory = redis_factory

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "POST" or not request.url.path.startswith(self._path_prefix):
            return await call_next(request)

        key = f"ratelimit:{client_identity(request)}:shipments"
        redis = await (self._redis_factory or get_redis)()
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, self._window)
        if count > self._limit:
            ttl = await redis.ttl(key)
            logger.warning("Rate limit exceeded for %s (%d/%d)", key, count, self._limit)
            exc = RateLimitError()
            return JSONResponse(
                status_code=exc.http_status,
                content=error_response(exc.code, exc.message).model_dump(),
                headers={"Retry-After": str(ttl if ttl and ttl > 0 else self._window)},
            )
        return await call_next(request)
