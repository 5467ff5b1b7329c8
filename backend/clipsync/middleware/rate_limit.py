"""
ClipSync Backend — Rate Limiting Middleware
============================================

What:  Per-IP sliding window rate limiter.
How:   Each IP keeps a deque of request times; entries older than the window
       are dropped on every request, and a full window is rejected with 429
       and Retry-After.

Limits come from settings (RATE_LIMIT_REQUESTS per RATE_LIMIT_WINDOW
seconds, default 1000/hour) and can be disabled with RATE_LIMIT_ENABLED=false.

State is per process. Multiple uvicorn workers each enforce their own window.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from clipsync.config import settings
from clipsync.exceptions import RateLimitExceededError
from clipsync.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

# Sweep idle IPs after this many recorded requests
CLEANUP_INTERVAL = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Args:
        max_requests: requests allowed per window (default settings.rate_limit_requests)
        window:       window length in seconds (default settings.rate_limit_window)
        enabled:      default settings.rate_limit_enabled
    """

    EXCLUDED_PATHS = {"/health", "/api/v1/system/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window = window or settings.rate_limit_window
        self.enabled = settings.rate_limit_enabled if enabled is None else enabled
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._recorded = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self.enabled or request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - self.window

        hits = self._requests[client_ip]
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= self.max_requests:
            retry_after = int(hits[0] + self.window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(hits),
                self.window,
            )
            error = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": error.message,
                    "details": {"retry_after": retry_after},
                    "request_id": request_id_var.get("") or None,
                },
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(self.max_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        hits.append(now)
        self._recorded += 1
        if self._recorded % CLEANUP_INTERVAL == 0:
            self._cleanup_inactive_ips(window_start)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(self.max_requests - len(hits), 0))
        return response

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive_ips = [
            ip for ip, hits in self._requests.items()
            if not hits or hits[-1] <= window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
