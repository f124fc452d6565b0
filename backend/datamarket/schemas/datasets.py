from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import Field, field_validator

from datamarket.schemas.common import CamelModel, Money, UserRef
from datamarket.validators import (
    DATASET_CATEGORIES,
    DESCRIPTION_MAX,
    DESCRIPTION_MIN,
    MAX_TAG_LEN,
    MAX_TAGS,
    PRICE_MAX,
    PRICE_MIN,
    TITLE_MAX,
    TITLE_MIN,
    normalize_tags,
)

Currency = Literal["ETH", "USD"]


def _check_category(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    if v not in DATASET_CATEGORIES:
        raise ValueError("Please select a valid category")
    return v


def _check_tags(v: Any) -> list[str] | None:
    if v is None:
        return None
    tags = normalize_tags(v)
    if len(tags) > MAX_TAGS:
        raise ValueError(f"Maximum {MAX_TAGS} tags allowed")
    if any(len(t) > MAX_TAG_LEN for t in tags):
        raise ValueError(f"Each tag must be {MAX_TAG_LEN} characters or less")
    return tags


class DatasetCreateIn(CamelModel):
    title: str = Field(min_length=TITLE_MIN, max_length=TITLE_MAX)
    description: str = Field(min_length=DESCRIPTION_MIN, max_length=DESCRIPTION_MAX)
    category: str
    price: Decimal = Field(ge=PRICE_MIN, le=PRICE_MAX)
    currency: Currency = "ETH"
    tags: list[str] = Field(default_factory=list)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("category")
    @classmethod
    def _v_category(cls, v: str) -> str:
        return _check_category(v)  # type: ignore[return-value]

    @field_validator("tags", mode="before")
    @classmethod
    def _v_tags(cls, v: Any) -> list[str]:
        return _check_tags(v) or []


class DatasetUpdateIn(CamelModel):
    title: str | None = Field(default=None, min_length=TITLE_MIN, max_length=TITLE_MAX)
    description: str | None = Field(default=None, min_length=DESCRIPTION_MIN, max_length=DESCRIPTION_MAX)
    category: str | None = None
    price: Decimal | None = Field(default=None, ge=PRICE_MIN, le=PRICE_MAX)
    tags: list[str] | None = None
    is_active: bool | None = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("category")
    @classmethod
    def _v_category(cls, v: str | None) -> str | None:
        return _check_category(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _v_tags(cls, v: Any) -> list[str] | None:
        return _check_tags(v)


class DatasetFilter(CamelModel):
    is_active: bool | None = True
    category: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    search: str | None = None
    seller_id: uuid.UUID | None = None


class DatasetOut(CamelModel):
    id: str
    title: str
    description: str
    category: str
    price: Money
    currency: str
    tags: list[str]
    file_size: int
    file_name: str
    file_type: str
    is_active: bool
    seller: UserRef | str | None
    downloads: int
    views: int
    rating: float
    review_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def of(cls, ds: Any, seller: Any = None) -> "DatasetOut":
        ref: UserRef | str | None
        if seller is not None:
            ref = UserRef(id=str(seller.id), username=seller.username, wallet_address=seller.wallet_address)
        else:
            ref = str(ds.seller_id) if ds.seller_id else None
        return cls(
            id=str(ds.id),
            title=ds.title,
            description=ds.description,
            category=ds.category,
            price=ds.price,
            currency=ds.currency,
            tags=list(ds.tags or []),
            file_size=ds.file_size,
            file_name=ds.file_name,
            file_type=ds.file_type,
            is_active=ds.is_active,
            seller=ref,
            downloads=ds.downloads,
            views=ds.views,
            rating=ds.rating,
            review_count=ds.review_count,
            created_at=ds.created_at,
            updated_at=ds.updated_at,
        )


class CategoryCount(CamelModel):
    name: str
    count: int
