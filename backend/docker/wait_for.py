"""Container entrypoint helper: block until Postgres (and Redis, when configured) answer."""

import argparse
import logging
import os
import sys
import time

import psycopg
import redis

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("datamarket.wait_for")


def normalize_dsn(dsn: str) -> str:
    """
    SQLAlchemy DSN -> libpq DSN:
    - postgresql+psycopg:// and postgresql+asyncpg:// become postgresql://
    - quotes picked up from env files are stripped
    """
    if not dsn:
        return dsn
    d = dsn.strip().strip('"').strip("'")
    scheme, sep, rest = d.partition("://")
    if sep and scheme.startswith("postgresql+"):
        d = "postgresql://" + rest
    return d


def wait_db(dsn: str, deadline: float) -> None:
    dsn = normalize_dsn(dsn)
    while time.time() < deadline:
        try:
            with psycopg.connect(dsn, connect_timeout=5) as conn:
                conn.execute("SELECT 1").fetchone()
            logger.info("[wait] database OK")
            return
        except psycopg.OperationalError as e:
            logger.warning("[wait] database not ready: %s", e)
            time.sleep(1)
    logger.error("[wait] database timeout")
    sys.exit(1)


def wait_redis(url: str, deadline: float) -> None:
    while time.time() < deadline:
        try:
            if redis.Redis.from_url(url, socket_connect_timeout=5).ping():
                logger.info("[wait] redis OK")
                return
        except redis.RedisError as e:
            logger.warning("[wait] redis not ready: %s", e)
            time.sleep(1)
    logger.error("[wait] redis timeout")
    sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Wait for the marketplace's backing services")
    ap.add_argument("--timeout", type=int, default=int(os.getenv("WAIT_FOR_TIMEOUT", "60")))
    args = ap.parse_args(argv)
    deadline = time.time() + args.timeout

    dsn = os.getenv("POSTGRES_DSN")
    if dsn and not dsn.startswith("sqlite"):
        wait_db(dsn, deadline)
    else:
        logger.info("[wait] no Postgres DSN -> skip database wait")

    redis_url = os.getenv("REDIS_URL") or os.getenv("REDIS_DSN")
    if redis_url:
        wait_redis(redis_url, deadline)
    else:
        logger.info("[wait] REDIS_URL not set -> skip redis wait")


if __name__ == "__main__":
    main()
