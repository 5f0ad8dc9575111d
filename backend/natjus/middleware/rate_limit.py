"""
NatJus Backend — Rate Limiting Middleware
===========================================

What:  Per-client sliding-window limit on the endpoints that spend LLM
       tokens: POST /api/uploads and POST /api/chat.
How:   A deque of request timestamps per (client IP, path); timestamps older
       than the window are dropped on every hit. Over the limit, the
       request is answered 429 with a Retry-After header and never reaches
       the route.

State lives in process memory, so each worker enforces its own limit.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, FrozenSet, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from natjus.config import settings
from natjus.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

LIMITED_PATHS: FrozenSet[str] = frozenset({"/api/uploads", "/api/chat"})

# Sweep idle clients every this many recorded requests
SWEEP_EVERY = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self._clock = clock
        self._hits: Dict[Tuple[str, str], Deque[float]] = defaultdict(deque)
        self._recorded = 0

    @staticmethod
    def is_limited(request: Request) -> bool:
        return request.method == "POST" and request.url.path.rstrip("/") in LIMITED_PATHS

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.is_limited(request):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        key = (client_ip, request.url.path.rstrip("/"))
        now = self._clock()
        hits = self._hits[key]
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

        if len(hits) >= self.max_requests:
            retry_after = int(hits[0] + self.window_seconds - now) + 1
            logger.warning(
                "Rate limit exceeded for %s on %s: %d requests in %ds",
                client_ip,
                key[1],
                len(hits),
                self.window_seconds,
            )
            error = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": error.message,
                    "details": error.context,
                },
                headers={"Retry-After": str(retry_after)},
            )

        hits.append(now)
        self._recorded += 1
        if self._recorded % SWEEP_EVERY == 0:
            self._sweep(now)
        return await call_next(request)

    def _sweep(self, now: float) -> None:
        idle = [k for k, hits in self._hits.items() if not hits or hits[-1] <= now - self.window_seconds]
        for k in idle:
            del self._hits[k]
        if idle:
            logger.debug("Dropped %d idle rate-limit entries", len(idle))
