"""Request logging middleware.

Logs every HTTP request with method, path, status code, latency and a short
request id. The id is stored on request.state so handlers can echo it in
ApiResponse, and returned to the client in the X-Request-ID header.

Log format:
    INFO [POST] /api/v1/shipments/batch → 200 (412ms) req=req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("ff.request")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception(
                "[%s] %s → unhandled error req=%s", request.method, request.url.path, request_id
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "[%s] %s → %d (%.0fms) req=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        return response
