from __future__ import annotations

import logging
import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from datamarket.deps import get_db
from datamarket.repos import dataset_repo, transaction_repo, user_repo
from datamarket.repos.user_repo import USER_SORTS
from datamarket.schemas.common import PageParams, ok, page_params, paginated
from datamarket.schemas.users import DatasetStats, ProfileUpdateIn, TransactionStats, UserProfile, UserStatsOut
from datamarket.security import AdminUser, CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

DB = Annotated[Session, Depends(get_db)]
UserPage = Annotated[PageParams, Depends(page_params(tuple(USER_SORTS)))]


@router.get("/stats")
def my_stats(user: CurrentUser, db: DB) -> dict[str, Any]:
    stats = UserStatsOut(
        datasets=DatasetStats(**dataset_repo.seller_stats(db, user.id)),
        transactions=TransactionStats(**transaction_repo.user_totals(db, user.id)),
    )
    return ok(stats, "User statistics retrieved successfully")


@router.put("/profile")
def update_profile(body: ProfileUpdateIn, user: CurrentUser, db: DB) -> dict[str, Any]:
    updated = user_repo.update_profile(db, user, body.model_dump(exclude_unset=True))
    return ok(UserProfile.model_validate(updated), "Profile updated successfully")


@router.delete("/account")
def delete_account(user: CurrentUser, db: DB) -> dict[str, Any]:
    # listings go through the regular delete path so their files are removed too
    removed = dataset_repo.delete_by_seller(db, user.id)
    user_repo.delete(db, user)
    logger.info("account deleted listings_removed=%d", removed)
    return ok(None, "Account deleted successfully")


@router.get("")
def list_users(_admin: AdminUser, db: DB, page: UserPage) -> dict[str, Any]:
    users, total = user_repo.list_users(
        db, offset=page.offset, limit=page.limit, sort=page.sort, descending=page.descending
    )
    items = [UserProfile.model_validate(u) for u in users]
    return paginated(items, page.page, total, page.limit, "Users retrieved successfully")


@router.get("/{user_id}")
def get_user(user_id: uuid.UUID, db: DB) -> dict[str, Any]:
    return ok(UserProfile.model_validate(user_repo.get(db, user_id)), "User profile retrieved successfully")
