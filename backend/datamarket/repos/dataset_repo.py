from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from datamarket.errors import NotFoundError, ValidationError
from datamarket.models import Dataset, User
from datamarket.schemas.datasets import DatasetCreateIn, DatasetFilter
from datamarket.services import file_store
from datamarket.validators import DATASET_CATEGORIES

log = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "category", "price", "tags", "is_active")
DATASET_SORTS = {
    "createdAt": Dataset.created_at,
    "updatedAt": Dataset.updated_at,
    "price": Dataset.price,
    "downloads": Dataset.downloads,
    "rating": Dataset.rating,
    "views": Dataset.views,
    "title": Dataset.title,
}


def _like_escape(s: str) -> str:
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def create(
    db: Session,
    payload: DatasetCreateIn,
    seller_id: uuid.UUID,
    *,
    file_size: int,
    file_name: str,
    file_path: str,
    file_type: str,
) -> Dataset:
    ds = Dataset(
        seller_id=seller_id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        price=payload.price,
        currency=payload.currency,
        tags=payload.tags,
        file_size=file_size,
        file_name=file_name,
        file_path=file_path,
        file_type=file_type,
        is_active=True,
    )
    db.add(ds)
    db.commit()
    db.refresh(ds)
    log.info("dataset created id=%s seller=%s", ds.id, seller_id)
    return ds


def get(db: Session, dataset_id: uuid.UUID) -> Dataset:
    ds = db.get(Dataset, dataset_id)
    if ds is None:
        raise NotFoundError("Dataset not found")
    return ds


def get_with_seller(db: Session, dataset_id: uuid.UUID) -> tuple[Dataset, User | None]:
    row = db.execute(
        select(Dataset, User).outerjoin(User, User.id == Dataset.seller_id).where(Dataset.id == dataset_id)
    ).first()
    if row is None:
        raise NotFoundError("Dataset not found")
    return row[0], row[1]


def view(db: Session, dataset_id: uuid.UUID, viewer_id: uuid.UUID | None) -> tuple[Dataset, User | None]:
    """Read a listing; a read by anyone but its seller bumps ``views`` in place."""
    ds, seller = get_with_seller(db, dataset_id)
    if viewer_id is None or viewer_id != ds.seller_id:
        db.execute(
            update(Dataset)
            .where(Dataset.id == dataset_id)
            .values(views=Dataset.views + 1)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(ds)
    return ds, seller


def _tag_matches(dialect: str, pattern: str) -> Any:
    """EXISTS over the individual elements of the tags array, not its serialized JSON text."""
    if dialect == "postgresql":
        elements = func.json_array_elements_text(Dataset.tags)
    else:
        elements = func.json_each(Dataset.tags)
    tag = elements.table_valued("value").alias("tag")
    return select(1).select_from(tag).where(tag.c.value.ilike(pattern, escape="\\")).exists()


def _apply_filter(stmt: Any, flt: DatasetFilter, dialect: str) -> Any:
    if flt.is_active is not None:
        stmt = stmt.where(Dataset.is_active.is_(flt.is_active))
    if flt.category:
        stmt = stmt.where(Dataset.category == flt.category)
    if flt.min_price is not None:
        stmt = stmt.where(Dataset.price >= flt.min_price)
    if flt.max_price is not None:
        stmt = stmt.where(Dataset.price <= flt.max_price)
    if flt.seller_id is not None:
        stmt = stmt.where(Dataset.seller_id == flt.seller_id)
    if flt.search:
        pattern = f"%{_like_escape(flt.search.strip())}%"
        stmt = stmt.where(
            or_(
                Dataset.title.ilike(pattern, escape="\\"),
                Dataset.description.ilike(pattern, escape="\\"),
                _tag_matches(dialect, pattern),
            )
        )
    return stmt


def list_datasets(
    db: Session,
    flt: DatasetFilter,
    *,
    offset: int,
    limit: int,
    sort: str,
    descending: bool,
) -> tuple[list[tuple[Dataset, User | None]], int]:
    """Page of listings joined with their seller, plus the total matching count."""
    if flt.min_price is not None and flt.max_price is not None and flt.min_price > flt.max_price:
        raise ValidationError(errors=["minPrice: must not exceed maxPrice"])

    col = DATASET_SORTS.get(sort, Dataset.created_at)
    order = col.desc() if descending else col.asc()

    dialect = db.get_bind().dialect.name
    total = db.scalar(_apply_filter(select(func.count(Dataset.id)), flt, dialect)) or 0
    stmt = _apply_filter(
        select(Dataset, User).outerjoin(User, User.id == Dataset.seller_id), flt, dialect
    ).order_by(order, Dataset.id).offset(offset).limit(limit)
    rows = [(r[0], r[1]) for r in db.execute(stmt).all()]
    return rows, int(total)


def update_dataset(db: Session, ds: Dataset, partial: dict[str, Any]) -> Dataset:
    """Apply allow-listed fields. Ownership is checked by the caller."""
    changes = {k: v for k, v in partial.items() if k in UPDATABLE_FIELDS and v is not None}
    if not changes:
        raise ValidationError("No valid updates provided")
    for key, value in changes.items():
        setattr(ds, key, value)
    db.commit()
    db.refresh(ds)
    return ds


def delete_dataset(db: Session, ds: Dataset) -> None:
    _delete(db, ds)
    db.commit()


def _delete(db: Session, ds: Dataset) -> None:
    file_store.remove(ds.file_path)
    db.delete(ds)
    log.info("dataset deleted id=%s", ds.id)


def delete_by_seller(db: Session, seller_id: uuid.UUID) -> int:
    """Remove every listing of a seller through the regular delete path. Caller commits."""
    rows = db.scalars(select(Dataset).where(Dataset.seller_id == seller_id)).all()
    for ds in rows:
        _delete(db, ds)
    return len(rows)


def increment_downloads(db: Session, dataset_id: uuid.UUID | None) -> None:
    """Atomic ``downloads + 1``; runs inside the caller's DB transaction."""
    if dataset_id is None:
        return
    db.execute(
        update(Dataset)
        .where(Dataset.id == dataset_id)
        .values(downloads=Dataset.downloads + 1)
        .execution_options(synchronize_session=False)
    )


def category_counts(db: Session) -> list[dict[str, Any]]:
    rows = db.execute(
        select(Dataset.category, func.count(Dataset.id))
        .where(Dataset.is_active.is_(True))
        .group_by(Dataset.category)
    ).all()
    counts = {cat: int(n) for cat, n in rows}
    return [{"name": cat, "count": counts.get(cat, 0)} for cat in DATASET_CATEGORIES]


def seller_stats(db: Session, seller_id: uuid.UUID) -> dict[str, Any]:
    row = db.execute(
        select(
            func.count(Dataset.id),
            func.coalesce(func.sum(Dataset.downloads), 0),
            func.coalesce(func.sum(Dataset.views), 0),
            func.coalesce(func.avg(Dataset.rating), 0),
        ).where(Dataset.seller_id == seller_id, Dataset.is_active.is_(True))
    ).one()
    avg = Decimal(str(row[3] or 0)).quantize(Decimal("0.01"))
    return {
        "total_listings": int(row[0] or 0),
        "total_downloads": int(row[1] or 0),
        "total_views": int(row[2] or 0),
        "average_rating": float(avg),
    }
