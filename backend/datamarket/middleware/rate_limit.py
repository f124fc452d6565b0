from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from fastapi import Request
from jose import JWTError
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from datamarket.deps import rds
from datamarket.errors import AppError
from datamarket.middleware.security_headers import BASELINE_HEADERS
from datamarket.security import parse_token

logger = logging.getLogger(__name__)

TOO_MANY = "Too many requests from this IP, please try again later."


class RateLimitedError(AppError):
    status_code = 429
    default_message = TOO_MANY

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else "unknown") or "unknown"


def _has_valid_token(request: Request) -> bool:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        return False
    try:
        parse_token(auth.split(" ", 1)[1])
    except JWTError:
        return False
    return True


def _hit(key: str, window_seconds: int) -> tuple[int, int]:
    """Increment a fixed-window counter; returns (count, seconds left). Raises on Redis errors."""
    cur = int(rds.incr(key))  # type: ignore[arg-type]
    if cur == 1:
        rds.expire(key, window_seconds + 5)
    ttl = int(rds.ttl(key) or window_seconds)  # type: ignore[arg-type]
    return cur, ttl if ttl > 0 else window_seconds


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP limiter for requests without a valid bearer token, one-minute windows, fail-open."""

    def __init__(self, app: ASGIApp, limit_per_minute: int = 100, exempt: tuple[str, ...] = ()) -> None:
        super().__init__(app)
        self.limit = int(limit_per_minute)
        self._exempt_prefixes = exempt
        self._exempt_exact = {"/metrics", "/health", "/live", "/ready"}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in self._exempt_exact or any(path.startswith(p) for p in self._exempt_prefixes):
            return await call_next(request)
        if _has_valid_token(request):
            return await call_next(request)

        key = f"rl:ip:{_client_ip(request)}:{int(time.time()) // 60}"
        try:
            # redis-py is blocking
            cur, ttl = await run_in_threadpool(_hit, key, 60)
            if cur > self.limit:
                headers = {"Retry-After": str(ttl), **BASELINE_HEADERS}
                # a response, not an exception: middleware runs outside the exception handlers
                return JSONResponse(status_code=429, content={"success": False, "message": TOO_MANY}, headers=headers)
        except Exception as e:
            logger.warning("RateLimitMiddleware failed to access Redis: %s", e)
        return await call_next(request)


def rate_limit(name: str, limit: int, window_seconds: int, message: str | None = None) -> Callable[..., Any]:
    """Factory: a dependency that limits one endpoint per client IP. Fail-open."""

    # sync so FastAPI runs the blocking Redis calls in its threadpool
    def _dep(request: Request) -> None:
        key = f"rl:endpoint:{name}:{_client_ip(request)}:{int(time.time()) // max(1, int(window_seconds))}"
        try:
            cur, ttl = _hit(key, int(window_seconds))
        except Exception as e:
            logger.warning("rate_limit dependency failed: %s", e)
            return None
        if cur > int(limit):
            raise RateLimitedError(ttl, message)
        return None

    return _dep
