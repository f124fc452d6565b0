from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from prometheus_client import (  # type: ignore[reportMissingImports]
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from datamarket.deps import get_db
from datamarket.models import Dataset, Transaction, User
from datamarket.validators import TRANSACTION_STATUSES

logger = logging.getLogger(__name__)

# In-process API metrics
api_requests_total = Counter("api_requests_total", "Total API requests", ["method", "endpoint", "status"])
api_request_duration_seconds = Histogram("api_request_duration_seconds", "API request duration seconds", ["endpoint"])

# Ledger events
purchases_created_total = Counter("purchases_created_total", "Purchases created by initial status", ["status"])
stats_propagations_total = Counter("stats_propagations_total", "Completed transactions credited to counters")

# Gauges set on scrape from the DB
users_total = Gauge("users_total", "Registered users")
active_datasets_total = Gauge("active_datasets_total", "Active dataset listings")
transactions_total = Gauge("transactions_total", "Transactions by status", ["status"])

router = APIRouter()


@router.get("/metrics")
def metrics(db: Annotated[Session, Depends(get_db)]) -> PlainTextResponse:
    """Prometheus metrics endpoint; DB-backed gauges are refreshed before rendering."""
    try:
        users_total.set(int(db.scalar(select(func.count(User.id))) or 0))
        active_datasets_total.set(
            int(db.scalar(select(func.count(Dataset.id)).where(Dataset.is_active.is_(True))) or 0)
        )
        counts = dict(db.execute(select(Transaction.status, func.count(Transaction.id)).group_by(Transaction.status)).all())
        for status in TRANSACTION_STATUSES:
            transactions_total.labels(status=status).set(int(counts.get(status, 0)))
    except Exception as e:
        logger.warning("metrics: failed to refresh DB gauges: %s", e, exc_info=True)

    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
