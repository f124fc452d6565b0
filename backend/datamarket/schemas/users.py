from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from datamarket.schemas.common import CamelModel, Money
from datamarket.validators import BIO_MAX, USERNAME_MAX, USERNAME_MIN, USERNAME_RE, validate_email


class PublicUser(CamelModel):
    id: str
    email: str
    username: str
    wallet_address: str
    role: str
    is_verified: bool

    @field_validator("id", mode="before")
    @classmethod
    def _v_id(cls, v: object) -> str:
        return str(v)


class UserProfile(PublicUser):
    bio: str | None = None
    avatar: str | None = None
    total_sales: int
    total_purchases: int
    total_earnings: Money
    joined_at: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProfileUpdateIn(CamelModel):
    email: str | None = None
    username: str | None = Field(default=None, min_length=USERNAME_MIN, max_length=USERNAME_MAX)
    bio: str | None = Field(default=None, max_length=BIO_MAX)
    avatar: str | None = None

    @field_validator("email")
    @classmethod
    def _v_email(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().lower()
        if not validate_email(v):
            raise ValueError("Please provide a valid email address")
        return v

    @field_validator("username")
    @classmethod
    def _v_username(cls, v: str | None) -> str | None:
        if v is not None and USERNAME_RE.fullmatch(v) is None:
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v


class DatasetStats(CamelModel):
    total_listings: int
    total_downloads: int
    total_views: int
    average_rating: float


class TransactionStats(CamelModel):
    total_purchases: int
    total_sales: int
    total_spent: Money
    total_earned: Money


class UserStatsOut(CamelModel):
    datasets: DatasetStats
    transactions: TransactionStats
