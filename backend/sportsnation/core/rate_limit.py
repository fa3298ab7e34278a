"""
Rate limiting for the Sports Nation BD API

Sliding window over per-client request timestamps, kept in process memory.
Every worker process keeps its own windows.
"""
import hashlib
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Tuple

from fastapi import Request, HTTPException, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse


WINDOW_SECONDS = 60

# Requests per window
RATE_LIMITS = {
    "authenticated": 600,
    "unauthenticated": 120,
    "otp": 5,
}

EXEMPT_PATHS = {
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    # Pathao pushes status bursts from a handful of IPs
    "/api/v1/courier/pathao/webhook",
}


class RateLimiter:

    def __init__(self, clock: Callable[[], float] = time.time, sweep_every: int = 1000):
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._sweep_every = sweep_every
        self._calls = 0

    def _sweep(self, cutoff: float):
        """Forget clients with no hit after cutoff"""
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]

    def is_allowed(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: int = WINDOW_SECONDS
    ) -> Tuple[bool, int, int]:
        """
        Record a hit for identifier if it is under max_requests in the window

        Returns:
            (allowed, remaining, retry_after_seconds)
        """
        now = self._clock()
        cutoff = now - window_seconds

        self._calls += 1
        if self._calls % self._sweep_every == 0:
            self._sweep(cutoff)

        hits = self._hits[identifier]
        while hits and hits[0] <= cutoff:
            hits.popleft()

        if len(hits) >= max_requests:
            retry_after = max(int(hits[0] + window_seconds - now) + 1, 1)
            return False, 0, retry_after

        hits.append(now)
        return True, max_requests - len(hits), 0

    def reset(self):
        self._hits.clear()
        self._calls = 0


rate_limiter = RateLimiter()


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_client_identifier(request: Request) -> Tuple[str, bool]:
    """
    Bearer token callers are keyed by a digest of the token, everyone else by IP

    Returns:
        (identifier, is_authenticated)
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        digest = hashlib.sha256(auth_header.encode()).hexdigest()[:16]
        return f"jwt:{digest}", True
    return f"ip:{get_client_ip(request)}", False


def _limited_headers(limit: int, retry_after: int) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": "0",
        "Retry-After": str(retry_after),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Global per-client limit

    Adds X-RateLimit-Limit / X-RateLimit-Remaining to every limited route and
    answers 429 with Retry-After once the window is full.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        identifier, authenticated = get_client_identifier(request)
        limit = RATE_LIMITS["authenticated" if authenticated else "unauthenticated"]

        allowed, remaining, retry_after = rate_limiter.is_allowed(identifier, limit)
        if not allowed:
            # A response, not an exception, so CORS headers still get added
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded. Please slow down."},
                headers=_limited_headers(limit, retry_after),
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response


async def rate_limit_check(
    request: Request,
    max_requests: int = 100,
    window_seconds: int = WINDOW_SECONDS
):
    """Per-route limit, counted separately from the global one"""
    identifier, _ = get_client_identifier(request)

    allowed, _, retry_after = rate_limiter.is_allowed(
        f"route:{request.url.path}:{identifier}",
        max_requests,
        window_seconds
    )
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded for this endpoint. Try again in {retry_after} seconds.",
            headers=_limited_headers(max_requests, retry_after),
        )


async def otp_rate_limit(request: Request):
    await rate_limit_check(request, max_requests=RATE_LIMITS["otp"])
