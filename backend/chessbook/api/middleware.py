"""
Request middleware for logging, timing, and request ID tracking.
"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from chessbook.core.logging import get_logger
from chessbook.core.metrics import record_request

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _route_template(request: Request) -> str:
    # Label by template so /bookings/17 and /bookings/18 share one series
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an ID (the caller's X-Request-ID when it sends
    one, so gateway callbacks can be traced end to end), binds it to the
    structlog context and logs status and duration once the response is out.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            record_request(request.method, _route_template(request), 500, duration)
            logger.error(
                "request_failed",
                error=str(e),
                duration_ms=round(duration * 1000, 2),
            )
            raise

        duration = time.perf_counter() - start_time
        record_request(request.method, _route_template(request), response.status_code, duration)
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{round(duration * 1000, 2)}ms"
        return response
