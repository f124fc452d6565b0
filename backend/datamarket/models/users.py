from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import String, func
from sqlalchemy.orm import Mapped, mapped_column

from datamarket.db.base import Base, Counter, Money


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        sa.CheckConstraint("role in ('user', 'admin')", name="ck_users_role"),
        sa.CheckConstraint(
            "total_sales >= 0 AND total_purchases >= 0 AND total_earnings >= 0",
            name="ck_users_counters_non_negative",
        ),
        sa.Index("ix_users_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(String(254), unique=True, index=True, nullable=False)
    username: Mapped[str] = mapped_column(String(30), unique=True, index=True, nullable=False)
    # '0x' + 40 hex
    wallet_address: Mapped[str] = mapped_column(String(42), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)

    bio: Mapped[str | None] = mapped_column(String(500), nullable=True)
    avatar: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    is_verified: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user", server_default="user")

    # Written only by the ledger (see repos.user_repo.apply_transaction_effect)
    total_sales: Mapped[Counter]
    total_purchases: Mapped[Counter]
    total_earnings: Mapped[Money]

    joined_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"
