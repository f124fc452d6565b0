from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any, Literal

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.orm import Session, aliased

from datamarket.errors import NotFoundError, ValidationError
from datamarket.models import Dataset, Transaction, User
from datamarket.schemas.transactions import TransactionFilter

Side = Literal["buyer", "seller"]

TRANSACTION_SORTS = {
    "createdAt": Transaction.created_at,
    "updatedAt": Transaction.updated_at,
    "amount": Transaction.amount,
    "status": Transaction.status,
}

Buyer = aliased(User, name="buyer")
Seller = aliased(User, name="seller")

# (transaction, {"buyer": User | None, "seller": User | None, "dataset": Dataset | None})
Row = tuple[Transaction, dict[str, Any]]


def _joined() -> Select[Any]:
    return (
        select(Transaction, Buyer, Seller, Dataset)
        .outerjoin(Buyer, Buyer.id == Transaction.buyer_id)
        .outerjoin(Seller, Seller.id == Transaction.seller_id)
        .outerjoin(Dataset, Dataset.id == Transaction.dataset_id)
    )


def _row(r: Any) -> Row:
    return r[0], {"buyer": r[1], "seller": r[2], "dataset": r[3]}


def add(db: Session, tx: Transaction) -> Transaction:
    """Stage a new record in the caller's DB transaction."""
    db.add(tx)
    db.flush()
    return tx


def get(db: Session, tx_id: uuid.UUID, *, for_update: bool = False) -> Transaction:
    stmt = select(Transaction).where(Transaction.id == tx_id)
    if for_update:
        stmt = stmt.with_for_update()
    tx = db.scalars(stmt).first()
    if tx is None:
        raise NotFoundError("Transaction not found")
    return tx


def get_related(db: Session, tx_id: uuid.UUID) -> Row:
    r = db.execute(_joined().where(Transaction.id == tx_id)).first()
    if r is None:
        raise NotFoundError("Transaction not found")
    return _row(r)


def has_completed(db: Session, buyer_id: uuid.UUID, dataset_id: uuid.UUID) -> bool:
    stmt = select(Transaction.id).where(
        Transaction.buyer_id == buyer_id,
        Transaction.dataset_id == dataset_id,
        Transaction.status == "completed",
    )
    return db.scalars(stmt.limit(1)).first() is not None


def claim_propagation(db: Session, tx_id: uuid.UUID) -> bool:
    """
    Conditionally flip ``stats_propagated``. Returns True for exactly one caller per transaction;
    the counter updates must run in the same DB transaction as this claim.
    """
    res = db.execute(
        update(Transaction)
        .where(Transaction.id == tx_id, Transaction.stats_propagated.is_(False))
        .values(stats_propagated=True)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def _apply_filter(stmt: Any, user_id: uuid.UUID, side: Side | None, flt: TransactionFilter) -> Any:
    if side == "buyer":
        stmt = stmt.where(Transaction.buyer_id == user_id)
    elif side == "seller":
        stmt = stmt.where(Transaction.seller_id == user_id)
    else:
        stmt = stmt.where(or_(Transaction.buyer_id == user_id, Transaction.seller_id == user_id))
    if flt.status:
        stmt = stmt.where(Transaction.status == flt.status)
    if flt.type:
        stmt = stmt.where(Transaction.type == flt.type)
    if flt.min_amount is not None:
        stmt = stmt.where(Transaction.amount >= flt.min_amount)
    if flt.max_amount is not None:
        stmt = stmt.where(Transaction.amount <= flt.max_amount)
    if flt.start_date is not None:
        stmt = stmt.where(Transaction.created_at >= flt.start_date)
    if flt.end_date is not None:
        stmt = stmt.where(Transaction.created_at <= flt.end_date)
    return stmt


def list_for_user(
    db: Session,
    user_id: uuid.UUID,
    flt: TransactionFilter,
    *,
    side: Side | None = None,
    offset: int,
    limit: int,
    sort: str,
    descending: bool,
) -> tuple[list[Row], int]:
    """Transactions the user is party to (either side unless ``side`` narrows it), with relations."""
    if flt.min_amount is not None and flt.max_amount is not None and flt.min_amount > flt.max_amount:
        raise ValidationError(errors=["minAmount: must not exceed maxAmount"])

    col = TRANSACTION_SORTS.get(sort, Transaction.created_at)
    order = col.desc() if descending else col.asc()

    total = db.scalar(_apply_filter(select(func.count(Transaction.id)), user_id, side, flt)) or 0
    stmt = _apply_filter(_joined(), user_id, side, flt).order_by(order, Transaction.id).offset(offset).limit(limit)
    return [_row(r) for r in db.execute(stmt).all()], int(total)


# ------------------------------- aggregates -------------------------------

def _dec(v: Any) -> Decimal:
    return Decimal(str(v)) if v is not None else Decimal("0")


def user_totals(db: Session, user_id: uuid.UUID) -> dict[str, Any]:
    """Completed purchases/sales of one user: counts and summed amounts."""
    bought = db.execute(
        select(func.count(Transaction.id), func.sum(Transaction.amount)).where(
            Transaction.buyer_id == user_id, Transaction.status == "completed"
        )
    ).one()
    sold = db.execute(
        select(func.count(Transaction.id), func.sum(Transaction.amount)).where(
            Transaction.seller_id == user_id, Transaction.status == "completed"
        )
    ).one()
    return {
        "total_purchases": int(bought[0] or 0),
        "total_sales": int(sold[0] or 0),
        "total_spent": _dec(bought[1]),
        "total_earned": _dec(sold[1]),
    }


def status_breakdown(db: Session) -> list[dict[str, Any]]:
    rows = db.execute(
        select(Transaction.status, func.count(Transaction.id), func.sum(Transaction.amount)).group_by(
            Transaction.status
        )
    ).all()
    return [{"status": s, "count": int(n), "total_amount": _dec(amt)} for s, n, amt in rows]


def daily_totals(db: Session, days: int = 30, now: datetime | None = None) -> list[dict[str, Any]]:
    """Per-day counts and sums for the trailing window, newest day first."""
    since = (now or datetime.now(UTC)) - timedelta(days=days)
    day = func.date(Transaction.created_at)
    rows = db.execute(
        select(day, func.count(Transaction.id), func.sum(Transaction.amount))
        .where(Transaction.created_at >= since)
        .group_by(day)
        .order_by(day.desc())
        .limit(days)
    ).all()
    return [{"date": str(d), "count": int(n), "total_amount": _dec(amt)} for d, n, amt in rows]


def top_parties(db: Session, side: Side, limit: int = 10) -> list[dict[str, Any]]:
    """Top buyers or sellers by summed amount; parties whose account is gone are skipped."""
    fk = Transaction.buyer_id if side == "buyer" else Transaction.seller_id
    volume = func.sum(Transaction.amount).label("volume")
    rows = db.execute(
        select(User.id, User.username, volume, func.count(Transaction.id))
        .select_from(Transaction)
        .join(User, User.id == fk)
        .group_by(User.id, User.username)
        .order_by(volume.desc(), User.username)
        .limit(limit)
    ).all()
    key = "total_spent" if side == "buyer" else "total_earned"
    return [
        {"user_id": str(uid), "username": name, key: _dec(vol), "transaction_count": int(n)}
        for uid, name, vol, n in rows
    ]
