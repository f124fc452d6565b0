from __future__ import annotations

import logging
import os
import uuid
from decimal import Decimal
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from datamarket.cache import Cache
from datamarket.deps import get_db
from datamarket.errors import NotFoundError, ValidationError
from datamarket.models import User
from datamarket.repos import dataset_repo
from datamarket.repos.dataset_repo import DATASET_SORTS
from datamarket.schemas.common import PageParams, ok, page_params, paginated, parse_model
from datamarket.schemas.datasets import CategoryCount, DatasetCreateIn, DatasetFilter, DatasetOut, DatasetUpdateIn
from datamarket.security import CurrentUser, OptionalUser, require_ownership_or_admin
from datamarket.services import file_store
from datamarket.validators import SEARCH_MAX, UPLOAD_FIELD_NAME

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/datasets", tags=["datasets"])

DB = Annotated[Session, Depends(get_db)]
DatasetPage = Annotated[PageParams, Depends(page_params(tuple(DATASET_SORTS)))]

CATEGORIES_CACHE_KEY = "datasets:categories"
CATEGORIES_TTL = 60


def dataset_owner(dataset_id: uuid.UUID, db: DB) -> uuid.UUID:
    return dataset_repo.get(db, dataset_id).seller_id


CanUpdate = Annotated[User, Depends(require_ownership_or_admin(dataset_owner, "You can only update your own datasets"))]
CanDelete = Annotated[User, Depends(require_ownership_or_admin(dataset_owner, "You can only delete your own datasets"))]


def _invalidate_categories() -> None:
    Cache.delete(CATEGORIES_CACHE_KEY)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_dataset(
    user: CurrentUser,
    db: DB,
    title: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    category: Annotated[str | None, Form()] = None,
    price: Annotated[str | None, Form()] = None,
    currency: Annotated[str | None, Form()] = None,
    tags: Annotated[str | None, Form()] = None,
    dataset_file: Annotated[UploadFile | None, File(alias=UPLOAD_FIELD_NAME)] = None,
) -> dict[str, Any]:
    fields = {"title": title, "description": description, "category": category, "price": price, "tags": tags}
    if currency:
        fields["currency"] = currency
    payload = parse_model(DatasetCreateIn, {k: v for k, v in fields.items() if v is not None})
    if dataset_file is None or not dataset_file.filename:
        raise ValidationError("Please upload a dataset file", errors=[f"{UPLOAD_FIELD_NAME}: Dataset file is required"])

    stored = file_store.save(dataset_file.file, dataset_file.filename, dataset_file.content_type)
    try:
        ds = dataset_repo.create(
            db,
            payload,
            user.id,
            file_size=stored.size,
            file_name=stored.original_name,
            file_path=stored.path,
            file_type=stored.file_type,
        )
    except Exception:
        db.rollback()
        file_store.remove(stored.path)
        raise
    _invalidate_categories()
    return ok(DatasetOut.of(ds, user), "Dataset created successfully")


@router.get("")
def list_datasets(
    db: DB,
    page: DatasetPage,
    category: Annotated[str | None, Query()] = None,
    min_price: Annotated[Decimal | None, Query(alias="minPrice", ge=0)] = None,
    max_price: Annotated[Decimal | None, Query(alias="maxPrice", ge=0)] = None,
    search: Annotated[str | None, Query(max_length=SEARCH_MAX)] = None,
    seller: Annotated[uuid.UUID | None, Query()] = None,
) -> dict[str, Any]:
    flt = DatasetFilter(
        is_active=True, category=category, min_price=min_price, max_price=max_price, search=search, seller_id=seller
    )
    rows, total = dataset_repo.list_datasets(
        db, flt, offset=page.offset, limit=page.limit, sort=page.sort, descending=page.descending
    )
    items = [DatasetOut.of(ds, seller_row) for ds, seller_row in rows]
    return paginated(items, page.page, total, page.limit, "Datasets retrieved successfully")


@router.get("/categories")
def categories(db: DB) -> dict[str, Any]:
    data = Cache.remember_json(CATEGORIES_CACHE_KEY, CATEGORIES_TTL, lambda: dataset_repo.category_counts(db))
    items = [CategoryCount.model_validate(c) for c in data or []]
    return ok(items, "Categories retrieved successfully")


@router.get("/my-datasets")
def my_datasets(user: CurrentUser, db: DB, page: DatasetPage) -> dict[str, Any]:
    flt = DatasetFilter(is_active=None, seller_id=user.id)
    rows, total = dataset_repo.list_datasets(
        db, flt, offset=page.offset, limit=page.limit, sort=page.sort, descending=page.descending
    )
    items = [DatasetOut.of(ds, seller_row) for ds, seller_row in rows]
    return paginated(items, page.page, total, page.limit, "Your datasets retrieved successfully")


@router.get("/{dataset_id}")
def get_dataset(dataset_id: uuid.UUID, viewer: OptionalUser, db: DB) -> dict[str, Any]:
    ds, seller = dataset_repo.view(db, dataset_id, viewer.id if viewer else None)
    return ok(DatasetOut.of(ds, seller), "Dataset retrieved successfully")


@router.put("/{dataset_id}")
def update_dataset(
    dataset_id: uuid.UUID,
    body: DatasetUpdateIn,
    user: CanUpdate,
    db: DB,
) -> dict[str, Any]:
    ds = dataset_repo.update_dataset(db, dataset_repo.get(db, dataset_id), body.model_dump(exclude_unset=True))
    _invalidate_categories()
    seller = user if ds.seller_id == user.id else None
    return ok(DatasetOut.of(ds, seller), "Dataset updated successfully")


@router.delete("/{dataset_id}")
def delete_dataset(
    dataset_id: uuid.UUID,
    _user: CanDelete,
    db: DB,
) -> dict[str, Any]:
    dataset_repo.delete_dataset(db, dataset_repo.get(db, dataset_id))
    _invalidate_categories()
    return ok(None, "Dataset deleted successfully")


@router.get("/{dataset_id}/download")
def download_dataset(dataset_id: uuid.UUID, user: CurrentUser, db: DB) -> FileResponse:
    ds = dataset_repo.get(db, dataset_id)
    if not ds.is_active:
        raise ValidationError("Dataset is not available for download")
    if not os.path.isfile(ds.file_path):
        logger.warning("download: stored file missing dataset=%s", ds.id)
        raise NotFoundError("File not found or corrupted")

    dataset_repo.increment_downloads(db, ds.id)
    db.commit()
    logger.info("dataset downloaded id=%s by=%s", dataset_id, user.id)
    return FileResponse(ds.file_path, filename=ds.file_name, media_type="application/octet-stream")
