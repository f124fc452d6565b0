from __future__ import annotations

import os
import time
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from datamarket.config import settings
from datamarket.deps import get_chain, get_db, rds

router = APIRouter(tags=["health"])
START_TIME = time.time()


def _ok(v: object) -> bool:
    return v == "ok" or v == "disabled" or (isinstance(v, dict) and bool(v.get("ok")))


def get_health_checks(request: Request, db: Session) -> dict[str, Any]:
    checks: dict[str, Any] = {}

    try:
        db.execute(text("SELECT 1"))
        checks["db"] = "ok"
    except Exception as e:
        checks["db"] = {"error": str(e)}

    try:
        rds.ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = {"error": str(e)}

    upload_dir = settings.upload_dir
    if upload_dir.is_dir() and os.access(upload_dir, os.W_OK):
        checks["uploads"] = "ok"
    else:
        checks["uploads"] = {"error": f"{upload_dir} is not writable"}

    chain = get_chain(request)
    if chain is None:
        checks["chain"] = "disabled"
    else:
        try:
            checks["chain"] = {"ok": True, "chainId": chain.network_info()["chain_id"]}
        except Exception as e:
            checks["chain"] = {"error": str(e)}

    return checks


@router.get("/health", status_code=status.HTTP_200_OK)
def health(request: Request, db: Annotated[Session, Depends(get_db)]) -> dict[str, Any]:
    checks = get_health_checks(request, db)
    return {
        "status": "healthy" if all(_ok(v) for v in checks.values()) else "degraded",
        "version": os.getenv("GIT_SHA") or "dev",
        "uptime": time.time() - START_TIME,
        "checks": checks,
    }


@router.get("/live", status_code=status.HTTP_200_OK)
def live() -> dict[str, str]:
    return {"status": "alive"}


@router.get("/ready")
def ready(request: Request, response: Response, db: Annotated[Session, Depends(get_db)]) -> dict[str, Any]:
    checks = get_health_checks(request, db)
    required = settings.readiness_required
    if all(_ok(checks.get(k)) for k in required):
        return {"status": "ready", "required": required}
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "required": required, "checks": checks}
