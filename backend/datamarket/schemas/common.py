from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Annotated, Any, Literal, TypeVar

from fastapi import Query
from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from datamarket.errors import ValidationError

# Decimal internally, JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Pagination(BaseModel):
    current: int
    total: int
    pages: int
    limit: int
    hasNext: bool
    hasPrev: bool


def paginate_meta(current: int, total: int, limit: int) -> Pagination:
    pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        current=current,
        total=total,
        pages=pages,
        limit=limit,
        hasNext=current < pages,
        hasPrev=current > 1,
    )


def ok(data: Any = None, message: str = "Success") -> dict[str, Any]:
    return {"success": True, "message": message, "data": data}


def paginated(items: list[Any], current: int, total: int, limit: int, message: str = "Success") -> dict[str, Any]:
    meta = paginate_meta(current, total, limit)
    return ok({"data": items, "pagination": meta.model_dump()}, message)


class PageParams(BaseModel):
    page: int = 1
    limit: int = 10
    sort: str = "createdAt"
    order: Literal["asc", "desc"] = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def descending(self) -> bool:
        return self.order == "desc"


def page_params(allowed_sorts: tuple[str, ...]):
    """Dependency factory: shared page/limit/sort/order query validation."""

    def _dep(
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[int, Query(ge=1, le=100)] = 10,
        sort: Annotated[str, Query()] = "createdAt",
        order: Annotated[Literal["asc", "desc"], Query()] = "desc",
    ) -> PageParams:
        if sort not in allowed_sorts:
            raise ValidationError(errors=["sort: Invalid sort field"])
        return PageParams(page=page, limit=limit, sort=sort, order=order)

    return _dep


class UserRef(CamelModel):
    id: str
    username: str
    wallet_address: str


# ------------------------------- validation errors -------------------------------

M = TypeVar("M", bound=BaseModel)

_LOC_ROOTS = {"body", "query", "path", "header", "cookie", "form"}


def format_errors(errors: Iterable[Mapping[str, Any]]) -> list[str]:
    """pydantic error dicts -> ``"field: message"`` strings, all of them."""
    out: list[str] = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if str(p) not in _LOC_ROOTS]
        msg = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
        out.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return out


def parse_model(model: type[M], data: Mapping[str, Any]) -> M:
    """Validate data that did not come through a FastAPI body (e.g. multipart form fields)."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(errors=format_errors(e.errors())) from e
