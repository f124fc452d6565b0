from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Index, String, func, text
from sqlalchemy.orm import Mapped, mapped_column

from datamarket.db.base import MONEY, Base, Money


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount"),
        sa.CheckConstraint(
            "status in ('pending', 'completed', 'failed', 'refunded')", name="ck_transactions_status"
        ),
        # at most one completed purchase per buyer and dataset
        Index(
            "uq_transactions_buyer_dataset_completed",
            "buyer_id",
            "dataset_id",
            unique=True,
            postgresql_where=text("status = 'completed'"),
            sqlite_where=text("status = 'completed'"),
        ),
        Index("ix_transactions_buyer_status", "buyer_id", "status"),
        Index("ix_transactions_seller_status", "seller_id", "status"),
        Index("ix_transactions_buyer_created", "buyer_id", "created_at"),
        Index("ix_transactions_seller_created", "seller_id", "created_at"),
        Index("ix_transactions_dataset", "dataset_id"),
        Index("ix_transactions_tx_hash", "blockchain_tx_hash"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    # references survive account / listing deletion as NULL
    buyer_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    seller_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    dataset_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid, ForeignKey("datasets.id", ondelete="SET NULL"), nullable=True
    )

    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ETH", server_default="ETH")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="purchase")
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="metamask")
    processing_fee: Mapped[Money]

    blockchain_tx_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    block_number: Mapped[int | None] = mapped_column(sa.BigInteger, nullable=True)
    gas_used: Mapped[int | None] = mapped_column(sa.BigInteger, nullable=True)
    gas_fee: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)

    # flipped exactly once, together with the buyer/seller/dataset counter updates
    stats_propagated: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
