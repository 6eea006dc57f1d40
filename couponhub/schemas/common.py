from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, HttpUrl, TypeAdapter
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Python attributes stay snake_case; JSON in and out is camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CamelIn(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, *, page: int, limit: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    pagination: Optional[Pagination] = None


# -------------------------
# Reusable field types
# -------------------------
def blank_to_none(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, str) and v.strip() == "":
        return None
    return v


_http_url = TypeAdapter(HttpUrl)


def _check_url(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    if len(v) > 500:
        raise ValueError("URL too long")
    _http_url.validate_python(v)
    return v


def _parse_date(v: Any) -> Any:
    v = blank_to_none(v)
    # date-only input means midnight UTC
    if isinstance(v, str) and len(v) == 10 and v[4] == "-" and v[7] == "-":
        return v + "T00:00:00"
    return v


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


OptionalUrl = Annotated[Optional[str], BeforeValidator(blank_to_none), AfterValidator(_check_url)]
OptionalText = Annotated[Optional[str], BeforeValidator(blank_to_none)]
OptionalDate = Annotated[Optional[datetime], BeforeValidator(_parse_date), AfterValidator(to_utc_naive)]
