from __future__ import annotations

from collections.abc import Generator

import redis
from fastapi import Request
from redis.backoff import NoBackoff
from redis.retry import Retry
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from datamarket.blockchain.web3_client import ChainReader
from datamarket.config import Settings, settings
from datamarket.errors import AppError


def get_settings() -> Settings:
    return settings


def build_engine(cfg: Settings) -> Engine:
    """Create the engine with bounded waits so no request hangs on the database."""
    timeout = int(cfg.db_timeout_seconds)
    if cfg.is_sqlite:
        # a single shared connection keeps in-memory databases alive across threads
        eng = create_engine(
            cfg.postgres_dsn,
            future=True,
            connect_args={"check_same_thread": False, "timeout": timeout},
            poolclass=StaticPool,
        )

        @event.listens_for(eng, "connect")
        def _fk_on(dbapi_conn, _record):  # type: ignore[no-untyped-def]
            dbapi_conn.execute("PRAGMA foreign_keys=ON")

        return eng
    return create_engine(
        cfg.postgres_dsn,
        future=True,
        pool_size=20,
        max_overflow=10,
        pool_timeout=timeout,
        pool_pre_ping=True,
        connect_args={
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        },
    )


engine = build_engine(settings)
SessionLocal = sessionmaker(engine, autoflush=False, autocommit=False, future=True)

# Redis connection with pool; one immediate retry keeps fail-open callers fast when Redis is down
_pool = redis.ConnectionPool.from_url(
    settings.redis_dsn,
    max_connections=100,
    socket_timeout=settings.redis_timeout_seconds,
    socket_connect_timeout=settings.redis_timeout_seconds,
    retry=Retry(NoBackoff(), 1),
)
rds = redis.Redis(connection_pool=_pool, decode_responses=True)


def get_redis() -> redis.Redis:
    """Dependency to get the Redis client instance."""
    return rds


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def build_chain(cfg: Settings) -> ChainReader | None:
    if not cfg.chain_rpc_url:
        return None
    return ChainReader(cfg.chain_rpc_url, timeout=int(cfg.chain_rpc_timeout_seconds))


def get_chain(request: Request) -> ChainReader | None:
    """The reader is owned by the application (created in create_app), never by this module."""
    return getattr(request.app.state, "chain", None)


def require_chain(request: Request) -> ChainReader:
    chain = get_chain(request)
    if chain is None:
        raise AppError("Chain access is not configured", status_code=503)
    return chain
