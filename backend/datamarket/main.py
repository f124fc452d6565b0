from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from datamarket import __version__
from datamarket.config import Settings, settings
from datamarket.deps import build_chain
from datamarket.errors import AppError
from datamarket.middleware import ObservabilityMiddleware, RateLimitMiddleware, SecurityHeadersMiddleware
from datamarket.middleware.rate_limit import RateLimitedError
from datamarket.routers.auth import router as auth_router
from datamarket.routers.chain import router as chain_router
from datamarket.routers.datasets import router as datasets_router
from datamarket.routers.health import router as health_router
from datamarket.routers.transactions import router as transactions_router
from datamarket.routers.users import router as users_router
from datamarket.schemas.common import format_errors
from datamarket.telemetry.logging import init_logging
from datamarket.telemetry.metrics import router as metrics_router

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, errors: list[str] | None = None, headers: dict[str, str] | None = None):
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):  # type: ignore[no-untyped-def]
        headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimitedError) else None
        return _error(exc.status_code, exc.message, exc.errors, headers)

    # 422 -> 400 with every field problem listed
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore[no-untyped-def]
        errs = exc.errors()
        if any(e.get("loc", ("",))[0] == "path" for e in errs):
            return _error(400, "Invalid ID format", format_errors(errs))
        return _error(400, "Validation failed", format_errors(errs))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[no-untyped-def]
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route {request.method} {request.url.path} not found"
        else:
            message = str(exc.detail)
        return _error(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):  # type: ignore[no-untyped-def]
        logger.warning("integrity error escaped a repo: %s", exc.orig)
        return _error(400, "Duplicate field value")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):  # type: ignore[no-untyped-def]
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal Server Error")


def api_info(prefix: str) -> dict[str, Any]:
    return {
        "success": True,
        "message": "Data marketplace API",
        "data": {
            "name": "datamarket",
            "version": __version__,
            "endpoints": {
                "auth": f"{prefix}/auth",
                "users": f"{prefix}/users",
                "datasets": f"{prefix}/datasets",
                "transactions": f"{prefix}/transactions",
                "chain": f"{prefix}/chain",
            },
        },
    }


def create_app(cfg: Settings = settings) -> FastAPI:
    init_logging()

    app = FastAPI(title="Data Marketplace API", version=__version__)
    # the chain reader lives for the application's lifetime; None disables chain features
    app.state.chain = build_chain(cfg)
    cfg.upload_dir.mkdir(parents=True, exist_ok=True)

    app.add_middleware(ProxyHeadersMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        limit_per_minute=cfg.rate_limit_per_minute,
        # login/register carry their own tighter limits
        exempt=(f"{cfg.api_prefix}/auth/",),
    )

    origins = cfg.cors_origins
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(metrics_router)  # /metrics
    for r in (auth_router, users_router, datasets_router, transactions_router, chain_router):
        app.include_router(r, prefix=cfg.api_prefix)

    @app.get(cfg.api_prefix, include_in_schema=False)
    def _api_info() -> dict[str, Any]:
        return api_info(cfg.api_prefix)

    logger.info("app created prefix=%s chain=%s", cfg.api_prefix, app.state.chain is not None)
    return app


app = create_app()
