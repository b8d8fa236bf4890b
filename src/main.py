"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.ff_common.database import engine
from src.ff_common.errors import AppError, InvariantViolationError
from src.ff_common.redis_client import close_redis, get_redis
from src.ff_common.response import error_response
from src.ff_fulfillment.api.router import router as fulfillment_router
from src.ff_gateway.middleware.rate_limit import RateLimitMiddleware
from src.ff_gateway.middleware.request_log import RequestLogMiddleware
from src.ff_inventory.api.router import router as inventory_router
from src.ff_pricing.api.router import router as pricing_router
from src.ff_wallet.api.router import router as wallet_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections. Shutdown: dispose."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    logger.info("%s started (carrier mode: %s)", settings.APP_NAME, settings.CARRIER_MODE)
    yield
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# Starlette runs the last-added middleware first: request log wraps rate limit.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, InvariantViolationError):
        logger.critical("Invariant violation on %s: %s", request.url.path, exc.message)
    resp = error_response(exc.code, exc.message, exc.detail)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(wallet_router, prefix="/api/v1")
app.include_router(inventory_router, prefix="/api/v1")
app.include_router(pricing_router, prefix="/api/v1")
app.include_router(fulfillment_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
