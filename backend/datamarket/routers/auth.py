from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from datamarket.deps import get_db
from datamarket.errors import NotFoundError, UnauthorizedError
from datamarket.middleware.rate_limit import rate_limit
from datamarket.repos import user_repo
from datamarket.schemas.auth import AuthOut, LoginIn, RegisterIn, TokenOut
from datamarket.schemas.common import ok
from datamarket.schemas.users import PublicUser, UserProfile
from datamarket.security import CurrentUser, hash_password, make_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

DB = Annotated[Session, Depends(get_db)]

login_limit = rate_limit("login", limit=10, window_seconds=3600, message="Too many login attempts, please try again later.")
register_limit = rate_limit("register", limit=5, window_seconds=3600, message="Too many accounts created from this IP.")


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(register_limit)])
def register(body: RegisterIn, db: DB) -> dict[str, Any]:
    user = user_repo.create(
        db,
        email=body.email,
        username=body.username,
        wallet_address=body.wallet_address,
        password_hash=hash_password(body.password),
        bio=body.bio,
    )
    logger.info("user registered id=%s", user.id)
    out = AuthOut(user=PublicUser.model_validate(user), token=make_token(user))
    return ok(out, "User registered successfully")


@router.post("/login", dependencies=[Depends(login_limit)])
def login(body: LoginIn, db: DB) -> dict[str, Any]:
    try:
        user = user_repo.find_by_identifier(db, body.identifier, body.wallet_address)
    except NotFoundError as e:
        raise UnauthorizedError("Invalid credentials") from e
    if not verify_password(body.password, user.password_hash):
        logger.info("login rejected: bad password user=%s", user.id)
        raise UnauthorizedError("Invalid credentials")

    user_repo.record_login(db, user)
    logger.info("user logged in id=%s", user.id)
    out = AuthOut(user=PublicUser.model_validate(user), token=make_token(user))
    return ok(out, "Login successful")


@router.get("/me")
def me(user: CurrentUser) -> dict[str, Any]:
    return ok(UserProfile.model_validate(user), "User profile retrieved successfully")


@router.post("/refresh")
def refresh(user: CurrentUser) -> dict[str, Any]:
    return ok(TokenOut(token=make_token(user)), "Token refreshed successfully")


@router.post("/logout")
def logout(user: CurrentUser) -> dict[str, Any]:
    # tokens are stateless; the client drops its copy
    return ok(None, "Logout successful")
