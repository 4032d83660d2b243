"""Per-client request budget over a rolling window."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


class SlidingWindowRateLimiter:
    """In-memory sliding window limiter keyed by client address.

    State lives in the process; multiple server instances each keep their own
    budget.
    """

    def __init__(
        self,
        limit: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    def allow(self, client_key: str) -> bool:
        """Record a request for ``client_key`` and return whether it is within budget."""
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)
        window = self._requests[client_key]
        while window and window[0] <= now - self.window_seconds:
            window.popleft()
        if len(window) >= self.limit:
            return False
        window.append(now)
        return True

    def reset(self, client_key: str) -> None:
        self._requests.pop(client_key, None)

    def tracked_clients(self) -> int:
        return len(self._requests)

    def _sweep(self, now: float) -> None:
        # Forget clients whose newest request has left the window.
        cutoff = now - self.window_seconds
        for key in [k for k, window in self._requests.items() if not window or window[-1] <= cutoff]:
            del self._requests[key]
        self._last_sweep = now


def client_address(request: Request) -> str:
    """Return the caller's address, preferring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject `/api/` requests beyond the per-client budget with HTTP 429."""

    def __init__(self, app, limiter: SlidingWindowRateLimiter, path_prefix: str = "/api/") -> None:
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(self.path_prefix) and not self.limiter.allow(client_address(request)):
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Please try again later."},
            )
        return await call_next(request)
