"""
NoteDrop Backend — Request Logging Middleware
==============================================

What:  One access-log line per request: method, path, status, duration, id.
How:   Severity follows the status: 5xx → ERROR, 4xx → WARNING, else INFO.

What we log vs what we DON'T log:
    ✅ Log: method, path, status, duration, IP, request ID
    ❌ Don't log: request bodies (they carry the submission password) or
       the User-Agent (it is the visibility gate input)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notedrop.middleware.request_id import request_id_var

logger = logging.getLogger("notedrop.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Duration covers everything behind the middleware, including the
    repository round-trips, which dominate: a submission does one read,
    one transformer call and one write.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Health probes would drown everything else
        if request.url.path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            request.url.path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
