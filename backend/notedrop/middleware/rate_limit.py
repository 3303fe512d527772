"""
NoteDrop Backend — Submission Rate Limiting Middleware
=======================================================

What:  Per-IP sliding window limit on POST requests.
Why:   Submissions are password-gated; throttling them slows down guessing
       and keeps a single client from hammering the repository with writes.
How:   Keeps request timestamps per IP in memory. Reads are never limited.

Algorithm: Sliding Window Log
    1. Drop timestamps older than the window
    2. If the remaining count has reached the limit, answer 429
    3. Otherwise record now and pass the request on

Scope:
    In-memory and per-process. Several workers each keep their own window.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from notedrop.config import settings
from notedrop.exceptions import RateLimitExceededError
from notedrop.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    LIMITED_METHODS = {"POST"}

    # Inactive IPs are swept once per this many recorded submissions
    CLEANUP_EVERY = 1000

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(app, **kwargs)
        self.max_requests = (
            settings.rate_limit_requests if max_requests is None else max_requests
        )
        self.window_seconds = (
            settings.rate_limit_window if window_seconds is None else window_seconds
        )
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._recorded = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method not in self.LIMITED_METHODS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - self.window_seconds

        recent = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = recent

        if len(recent) >= self.max_requests:
            oldest = recent[0] if recent else now
            exc = RateLimitExceededError(
                retry_after=int(oldest + self.window_seconds - now) + 1,
            )
            logger.warning(
                "Submission rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(recent),
                self.window_seconds,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        recent.append(now)
        self._recorded += 1
        if self._recorded % self.CLEANUP_EVERY == 0:
            self._cleanup_inactive_ips(window_start)
        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive = [
            ip for ip, stamps in self._requests.items()
            if not stamps or stamps[-1] <= window_start
        ]
        for ip in inactive:
            del self._requests[ip]
