from __future__ import annotations

import hashlib
import time
import uuid

import structlog
from fastapi import Request
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from datamarket.security import parse_token
from datamarket.telemetry.logging import get_logger
from datamarket.telemetry.metrics import api_request_duration_seconds, api_requests_total


def _user_id_hash(request: Request) -> str | None:
    """sha256 of the JWT subject; no DB access, bad tokens are simply anonymous."""
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        return None
    try:
        sub = parse_token(auth.split(" ", 1)[1]).get("sub")
    except JWTError:
        return None
    return hashlib.sha256(str(sub).encode("utf-8")).hexdigest() if sub else None


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(trace_id=trace_id)
        logger = get_logger()

        method = request.method.upper()
        user_id_hash = _user_id_hash(request)

        t0 = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Trace-Id"] = trace_id
            return response
        finally:
            dt = time.perf_counter() - t0
            # path template once routing has run, raw path otherwise (404s)
            route = request.scope.get("route")
            endpoint = getattr(route, "path", None) or request.url.path
            api_requests_total.labels(method=method, endpoint=endpoint, status=str(status_code)).inc()
            api_request_duration_seconds.labels(endpoint=endpoint).observe(dt)
            logger.info(
                "request",
                method=method,
                endpoint=endpoint,
                status=status_code,
                duration_ms=round(dt * 1000.0, 3),
                result="ok" if status_code < 400 else "error",
                user_id_hash=user_id_hash,
            )
