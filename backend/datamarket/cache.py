from __future__ import annotations

import json
import logging
from collections.abc import Callable

from datamarket.deps import rds

logger = logging.getLogger(__name__)

JSONType = dict[str, object] | list[object] | str | int | float | bool | None


class Cache:
    """Small JSON cache over Redis. Every operation fails open: a Redis outage is a cache miss."""

    @staticmethod
    def get_json(key: str) -> JSONType | None:
        try:
            raw = rds.get(key)
        except Exception:
            logger.debug("Cache.get_json failed for key=%s", key, exc_info=True)
            return None
        if raw is None:
            return None
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="ignore")
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Cache.get_json: undecodable value for key=%s", key)
            return None

    @staticmethod
    def set_json(key: str, value: JSONType, ttl: int) -> None:
        try:
            rds.setex(key, int(ttl), json.dumps(value, separators=(",", ":")))
        except Exception:
            logger.warning("Cache.set_json failed for key=%s", key, exc_info=True)

    @staticmethod
    def delete(key: str) -> None:
        try:
            rds.delete(key)
        except Exception:
            logger.warning("Cache.delete failed for key=%s", key, exc_info=True)

    @staticmethod
    def remember_json(key: str, ttl: int, producer: Callable[[], JSONType]) -> JSONType | None:
        cached = Cache.get_json(key)
        if cached is not None:
            return cached
        val = producer()
        if val is not None:
            Cache.set_json(key, val, ttl)
        return val
