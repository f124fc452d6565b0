from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Literal

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from datamarket.errors import ConflictError, NotFoundError, ValidationError
from datamarket.models import User

log = logging.getLogger(__name__)

PROFILE_FIELDS = ("email", "username", "bio", "avatar")
USER_SORTS = {
    "createdAt": User.created_at,
    "username": User.username,
    "totalSales": User.total_sales,
    "totalEarnings": User.total_earnings,
}


def _conflict_field(existing: User, email: str | None, username: str | None, wallet: str | None) -> str:
    if email is not None and existing.email == email:
        return "Email"
    if username is not None and existing.username == username:
        return "Username"
    if wallet is not None and existing.wallet_address == wallet:
        return "Wallet address"
    return "User"


def get(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def create(
    db: Session,
    *,
    email: str,
    username: str,
    wallet_address: str,
    password_hash: str,
    bio: str | None = None,
) -> User:
    """Register a user. Email and wallet address are stored lower-cased; new users are auto-verified."""
    email = email.lower()
    wallet = wallet_address.lower()
    existing = db.scalars(
        select(User).where(or_(User.email == email, User.username == username, User.wallet_address == wallet))
    ).first()
    if existing is not None:
        raise ConflictError(f"{_conflict_field(existing, email, username, wallet)} already exists")

    user = User(
        email=email,
        username=username,
        wallet_address=wallet,
        password_hash=password_hash,
        bio=bio or None,
        is_verified=True,
        role="user",
        joined_at=datetime.now(UTC),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # lost a race against a concurrent registration
        raise ConflictError("User already exists") from e
    db.refresh(user)
    return user


def find_by_identifier(db: Session, identifier: str | None = None, wallet_address: str | None = None) -> User:
    """
    Login lookup: wallet address wins when given; otherwise an identifier containing '@' is an
    email (case-insensitive), anything else a username.
    """
    if wallet_address:
        stmt = select(User).where(User.wallet_address == wallet_address.lower())
    elif identifier:
        if "@" in identifier:
            stmt = select(User).where(func.lower(User.email) == identifier.lower())
        else:
            stmt = select(User).where(User.username == identifier)
    else:
        raise ValidationError("Please provide email, username, or wallet address")
    user = db.scalars(stmt).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def update_profile(db: Session, user: User, partial: dict[str, Any]) -> User:
    # email and username are NOT NULL; an explicit null is treated as "no change"
    changes = {
        k: v for k, v in partial.items() if k in PROFILE_FIELDS and not (v is None and k in ("email", "username"))
    }
    if not changes:
        raise ValidationError("No valid updates provided")

    email = changes.get("email")
    username = changes.get("username")
    if email or username:
        conds = []
        if email:
            conds.append(User.email == email.lower())
        if username:
            conds.append(User.username == username)
        other = db.scalars(select(User).where(User.id != user.id, or_(*conds))).first()
        if other is not None:
            raise ConflictError(f"{_conflict_field(other, email and email.lower(), username, None)} already exists")
        if email:
            changes["email"] = email.lower()

    for key, value in changes.items():
        setattr(user, key, value)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Duplicate field value") from e
    db.refresh(user)
    return user


def record_login(db: Session, user: User) -> None:
    user.last_login_at = datetime.now(UTC)
    db.commit()


def apply_transaction_effect(
    db: Session,
    user_id: uuid.UUID | None,
    role: Literal["buyer", "seller"],
    amount: Decimal,
    fee: Decimal,
) -> None:
    """
    The only writer of the purchase/sale counters. Atomic in-database increments; the caller owns
    the surrounding DB transaction (no commit here).
    """
    if user_id is None:
        return
    if role == "buyer":
        values: dict[str, Any] = {"total_purchases": User.total_purchases + 1}
    elif role == "seller":
        values = {
            "total_sales": User.total_sales + 1,
            "total_earnings": User.total_earnings + (amount - fee),
        }
    else:
        raise ValueError(f"unknown role: {role}")
    db.execute(update(User).where(User.id == user_id).values(**values).execution_options(synchronize_session=False))


def list_users(db: Session, *, offset: int, limit: int, sort: str, descending: bool) -> tuple[list[User], int]:
    col = USER_SORTS.get(sort, User.created_at)
    order = col.desc() if descending else col.asc()
    total = db.scalar(select(func.count()).select_from(User)) or 0
    users = db.scalars(select(User).order_by(order, User.id).offset(offset).limit(limit)).all()
    return list(users), int(total)


def delete(db: Session, user: User) -> None:
    """Hard delete. Transactions keep their rows; the FK is nulled by the database."""
    user_id = user.id
    db.delete(user)
    db.commit()
    log.info("user deleted id=%s", user_id)
