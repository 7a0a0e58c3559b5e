"""One log line per HTTP request, tagged with a request id."""

import os
import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from config.logging_config import redact_text

logger = structlog.get_logger("request")

REQUEST_ID_HEADER = "x-request-id"
# Campaign submissions fan out to several Graph calls; only flag the outliers
SLOW_REQUEST_MS = float(os.getenv("SLOW_REQUEST_MS", "15000"))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/health":
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=request.method, path=request.url.path
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "request_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                exc_info=True,
            )
            raise
        else:
            duration_ms = round((time.perf_counter() - started) * 1000, 1)
            fields = {"status_code": response.status_code, "duration_ms": duration_ms}
            if request.url.query:
                fields["query"] = redact_text(request.url.query)
            if duration_ms >= SLOW_REQUEST_MS:
                logger.warning("request_slow", **fields)
            else:
                logger.info("request_completed", **fields)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "method", "path")
