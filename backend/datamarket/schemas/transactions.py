from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import Field, field_validator

from datamarket.schemas.common import CamelModel, Money, UserRef
from datamarket.validators import validate_tx_hash

Status = Literal["pending", "completed", "failed", "refunded"]
PaymentMethod = Literal["metamask", "wallet_connect", "other"]


def _check_hash(v: str | None) -> str | None:
    if v in (None, ""):
        return None
    if not validate_tx_hash(v):  # type: ignore[arg-type]
        raise ValueError("Please provide a valid transaction hash")
    return v


class PurchaseIn(CamelModel):
    dataset_id: uuid.UUID
    amount: Decimal = Field(ge=0)
    currency: Literal["ETH", "USD"] | None = None
    blockchain_tx_hash: str | None = None
    payment_method: PaymentMethod = "metamask"

    @field_validator("blockchain_tx_hash")
    @classmethod
    def _v_hash(cls, v: str | None) -> str | None:
        return _check_hash(v)


class StatusUpdateIn(CamelModel):
    # validated by the ledger so an unknown value yields "Invalid transaction status"
    status: str
    blockchain_tx_hash: str | None = None
    block_number: int | None = Field(default=None, ge=0)
    gas_used: int | None = Field(default=None, ge=0)
    gas_fee: Decimal | None = Field(default=None, ge=0)

    @field_validator("blockchain_tx_hash")
    @classmethod
    def _v_hash(cls, v: str | None) -> str | None:
        return _check_hash(v)


class DatasetRef(CamelModel):
    id: str
    title: str
    price: Money
    currency: str
    file_size: int
    file_name: str
    file_type: str


class TransactionOut(CamelModel):
    id: str
    buyer: UserRef | str | None
    seller: UserRef | str | None
    dataset: DatasetRef | str | None
    amount: Money
    currency: str
    status: str
    type: str
    payment_method: str
    processing_fee: Money
    blockchain_tx_hash: str | None = None
    block_number: int | None = None
    gas_used: int | None = None
    gas_fee: Money | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def of(cls, tx: Any, related: dict[str, Any] | None = None) -> "TransactionOut":
        """``related`` carries the records resolved by the repo join (buyer, seller, dataset)."""
        related = related or {}
        return cls(
            id=str(tx.id),
            buyer=_user(related.get("buyer"), tx.buyer_id),
            seller=_user(related.get("seller"), tx.seller_id),
            dataset=_dataset(related.get("dataset"), tx.dataset_id),
            amount=tx.amount,
            currency=tx.currency,
            status=tx.status,
            type=tx.type,
            payment_method=tx.payment_method,
            processing_fee=tx.processing_fee,
            blockchain_tx_hash=tx.blockchain_tx_hash,
            block_number=tx.block_number,
            gas_used=tx.gas_used,
            gas_fee=tx.gas_fee,
            created_at=tx.created_at,
            updated_at=tx.updated_at,
        )


def _user(u: Any, fallback_id: Any) -> UserRef | str | None:
    if u is not None:
        return UserRef(id=str(u.id), username=u.username, wallet_address=u.wallet_address)
    return str(fallback_id) if fallback_id else None


def _dataset(ds: Any, fallback_id: Any) -> DatasetRef | str | None:
    if ds is not None:
        return DatasetRef(
            id=str(ds.id),
            title=ds.title,
            price=ds.price,
            currency=ds.currency,
            file_size=ds.file_size,
            file_name=ds.file_name,
            file_type=ds.file_type,
        )
    return str(fallback_id) if fallback_id else None


class TransactionFilter(CamelModel):
    status: Status | None = None
    type: Literal["purchase", "sale"] | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class StatusBucket(CamelModel):
    status: str
    count: int
    total_amount: Money


class DailyBucket(CamelModel):
    date: str
    count: int
    total_amount: Money


class TopBuyer(CamelModel):
    user_id: str
    username: str
    total_spent: Money
    transaction_count: int


class TopSeller(CamelModel):
    user_id: str
    username: str
    total_earned: Money
    transaction_count: int


class AnalyticsOut(CamelModel):
    status_breakdown: list[StatusBucket]
    daily_transactions: list[DailyBucket]
    top_buyers: list[TopBuyer]
    top_sellers: list[TopSeller]
