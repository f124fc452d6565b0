from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from datamarket.deps import get_chain, get_db
from datamarket.repos.transaction_repo import TRANSACTION_SORTS, Row
from datamarket.schemas.common import PageParams, ok, page_params, paginated
from datamarket.schemas.transactions import (
    AnalyticsOut,
    PurchaseIn,
    Status,
    StatusUpdateIn,
    TransactionFilter,
    TransactionOut,
)
from datamarket.security import AdminUser, CurrentUser
from datamarket.services.ledger import Ledger

router = APIRouter(prefix="/transactions", tags=["transactions"])

DB = Annotated[Session, Depends(get_db)]
TxPage = Annotated[PageParams, Depends(page_params(tuple(TRANSACTION_SORTS)))]


def get_ledger(request: Request, db: DB) -> Ledger:
    return Ledger(db, chain=get_chain(request))


LedgerDep = Annotated[Ledger, Depends(get_ledger)]


def transaction_filter(
    status_: Annotated[Status | None, Query(alias="status")] = None,
    type_: Annotated[Literal["purchase", "sale"] | None, Query(alias="type")] = None,
    min_amount: Annotated[Decimal | None, Query(alias="minAmount", ge=0)] = None,
    max_amount: Annotated[Decimal | None, Query(alias="maxAmount", ge=0)] = None,
    start_date: Annotated[datetime | None, Query(alias="startDate")] = None,
    end_date: Annotated[datetime | None, Query(alias="endDate")] = None,
) -> TransactionFilter:
    return TransactionFilter(
        status=status_,
        type=type_,
        min_amount=min_amount,
        max_amount=max_amount,
        start_date=start_date,
        end_date=end_date,
    )


Filter = Annotated[TransactionFilter, Depends(transaction_filter)]


def _out(row: Row) -> TransactionOut:
    tx, related = row
    return TransactionOut.of(tx, related)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_purchase(body: PurchaseIn, user: CurrentUser, ledger: LedgerDep) -> dict[str, Any]:
    return ok(_out(ledger.create_purchase(user, body)), "Transaction created successfully")


@router.get("")
def list_transactions(user: CurrentUser, ledger: LedgerDep, flt: Filter, page: TxPage) -> dict[str, Any]:
    rows, total = ledger.list_transactions(user, flt, page)
    return paginated([_out(r) for r in rows], page.page, total, page.limit, "Transactions retrieved successfully")


@router.get("/purchases")
def purchase_history(user: CurrentUser, ledger: LedgerDep, flt: Filter, page: TxPage) -> dict[str, Any]:
    rows, total = ledger.list_transactions(user, flt, page, side="buyer")
    return paginated([_out(r) for r in rows], page.page, total, page.limit, "Purchase history retrieved successfully")


@router.get("/sales")
def sales_history(user: CurrentUser, ledger: LedgerDep, flt: Filter, page: TxPage) -> dict[str, Any]:
    rows, total = ledger.list_transactions(user, flt, page, side="seller")
    return paginated([_out(r) for r in rows], page.page, total, page.limit, "Sales history retrieved successfully")


@router.get("/analytics")
def analytics(_admin: AdminUser, ledger: LedgerDep) -> dict[str, Any]:
    return ok(AnalyticsOut.model_validate(ledger.analytics()), "Transaction analytics retrieved successfully")


@router.get("/{tx_id}")
def get_transaction(tx_id: uuid.UUID, user: CurrentUser, ledger: LedgerDep) -> dict[str, Any]:
    return ok(_out(ledger.get_by_id(tx_id, user)), "Transaction retrieved successfully")


@router.put("/{tx_id}/status")
def update_status(tx_id: uuid.UUID, body: StatusUpdateIn, user: CurrentUser, ledger: LedgerDep) -> dict[str, Any]:
    return ok(_out(ledger.update_status(tx_id, user, body)), "Transaction status updated successfully")
