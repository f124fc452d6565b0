from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Annotated, Any

import bcrypt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from datamarket.config import settings
from datamarket.deps import get_db
from datamarket.errors import ForbiddenError, UnauthorizedError
from datamarket.models import User

logger = logging.getLogger(__name__)

# missing/malformed headers are reported through our own envelope, not the scheme's 403
bearer = HTTPBearer(auto_error=False)

Credentials = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer)]
DB = Annotated[Session, Depends(get_db)]


# ------------------------------- passwords -------------------------------

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("verify_password: malformed stored hash")
        return False


# ------------------------------- tokens -------------------------------

def make_token(user: User) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "walletAddress": user.wallet_address,
        "iat": int(now.timestamp()),
        "exp": int((now + settings.jwt_access_ttl).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def parse_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def _user_from_token(db: Session, token: str) -> User:
    try:
        payload = parse_token(token)
    except ExpiredSignatureError as e:
        raise UnauthorizedError("Invalid or expired token") from e
    except JWTError as e:
        logger.info("token rejected: %s", e)
        raise UnauthorizedError("Invalid or expired token") from e

    try:
        uid = uuid.UUID(str(payload.get("sub")))
    except ValueError as e:
        raise UnauthorizedError("Invalid or expired token") from e

    user = db.get(User, uid)
    if user is None:
        raise UnauthorizedError("User not found")
    return user


# ------------------------------- dependencies -------------------------------

def get_current_user(request: Request, creds: Credentials, db: DB) -> User:
    if creds is None:
        header = request.headers.get("authorization")
        if header:
            raise UnauthorizedError("Invalid token format. Use: Bearer <token>")
        raise UnauthorizedError("Access token is required")
    user = _user_from_token(db, creds.credentials)
    if not user.is_verified and request.url.path not in settings.unverified_allowed_paths:
        raise ForbiddenError("Please verify your email address")
    return user


def optional_user(creds: Credentials, db: DB) -> User | None:
    """Like get_current_user, but an absent or bad token just means an anonymous caller."""
    if creds is None:
        return None
    try:
        return _user_from_token(db, creds.credentials)
    except UnauthorizedError as e:
        logger.debug("optional auth ignored: %s", e.message)
        return None


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(optional_user)]


def require_role(*roles: str) -> Callable[..., User]:
    def _dep(user: CurrentUser) -> User:
        if user.role not in roles:
            raise ForbiddenError("Insufficient permissions")
        return user

    return _dep


require_admin = require_role("admin")
AdminUser = Annotated[User, Depends(require_admin)]


def ensure_owner_or_admin(user: User, owner_id: uuid.UUID | None, message: str = "Access denied") -> None:
    if user.role != "admin" and owner_id != user.id:
        raise ForbiddenError(message)


def require_ownership_or_admin(
    resolve_owner_id: Callable[..., uuid.UUID | None], message: str = "Access denied"
) -> Callable[..., User]:
    """
    Dependency factory. ``resolve_owner_id`` is itself a dependency (it may take path params and
    the DB session); the caller passes when it is an admin or the resolved owner.
    """

    # a default-value Depends: the closure variable is not visible to annotation evaluation
    def _dep(user: CurrentUser, owner_id: uuid.UUID | None = Depends(resolve_owner_id)) -> User:
        ensure_owner_or_admin(user, owner_id, message)
        return user

    return _dep
