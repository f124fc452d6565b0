from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from datamarket.db.base import MONEY, Base, Counter


class Dataset(Base):
    __tablename__ = "datasets"
    __table_args__ = (
        sa.CheckConstraint("price >= 0 AND price <= 1000", name="ck_datasets_price_range"),
        sa.CheckConstraint("file_size >= 0", name="ck_datasets_file_size"),
        sa.CheckConstraint("downloads >= 0 AND views >= 0 AND review_count >= 0", name="ck_datasets_counters"),
        sa.CheckConstraint("rating >= 0 AND rating <= 5", name="ck_datasets_rating"),
        Index("ix_datasets_seller", "seller_id"),
        Index("ix_datasets_category", "category"),
        Index("ix_datasets_active_created", "is_active", "created_at"),
        Index("ix_datasets_price", "price"),
        Index("ix_datasets_downloads", "downloads"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    seller_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(2000), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ETH", server_default="ETH")
    tags: Mapped[list[str]] = mapped_column(sa.JSON, nullable=False, default=list)

    file_size: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(sa.Text, nullable=False)
    file_type: Mapped[str] = mapped_column(String(8), nullable=False, default="other")

    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, server_default=sa.true())

    downloads: Mapped[Counter]
    views: Mapped[Counter]
    rating: Mapped[float] = mapped_column(sa.Float, nullable=False, default=0.0, server_default="0")
    review_count: Mapped[Counter]

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
