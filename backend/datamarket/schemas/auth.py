from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from datamarket.schemas.common import CamelModel
from datamarket.schemas.users import PublicUser
from datamarket.validators import (
    BIO_MAX,
    PASSWORD_MAX,
    PASSWORD_MIN,
    USERNAME_MAX,
    USERNAME_MIN,
    USERNAME_RE,
    validate_email,
    validate_eth_address,
)


class RegisterIn(CamelModel):
    email: str
    username: str = Field(min_length=USERNAME_MIN, max_length=USERNAME_MAX)
    wallet_address: str
    password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)
    bio: str | None = Field(default=None, max_length=BIO_MAX)

    @field_validator("email")
    @classmethod
    def _v_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not validate_email(v):
            raise ValueError("Please provide a valid email address")
        return v

    @field_validator("username", mode="before")
    @classmethod
    def _v_username(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip()
            if v and USERNAME_RE.fullmatch(v) is None:
                raise ValueError("Username can only contain letters, numbers, and underscores")
        return v

    @field_validator("wallet_address")
    @classmethod
    def _v_addr(cls, v: str) -> str:
        v = v.strip()
        if not validate_eth_address(v):
            raise ValueError("Please provide a valid Ethereum wallet address (42 characters starting with 0x)")
        return v

    @field_validator("bio")
    @classmethod
    def _v_bio(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v


class LoginIn(CamelModel):
    identifier: str | None = None
    wallet_address: str | None = None
    password: str = Field(min_length=1, max_length=PASSWORD_MAX)

    @field_validator("identifier")
    @classmethod
    def _v_identifier(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("wallet_address")
    @classmethod
    def _v_addr(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        if not validate_eth_address(v):
            raise ValueError("Please provide a valid Ethereum wallet address")
        return v

    @model_validator(mode="after")
    def _one_identity(self) -> "LoginIn":
        if not self.identifier and not self.wallet_address:
            raise ValueError("Please provide email, username, or wallet address")
        return self


class AuthOut(CamelModel):
    user: PublicUser
    token: str


class TokenOut(CamelModel):
    token: str
