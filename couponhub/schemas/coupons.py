from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, model_validator

from couponhub.schemas.brands import BrandSummary
from couponhub.schemas.categories import CategorySummary
from couponhub.schemas.common import CamelIn, CamelModel, OptionalDate, OptionalText, OptionalUrl

CouponType = Literal["COUPON_CODE", "DEAL", "CASHBACK", "FREE_SHIPPING"]
DiscountType = Literal["PERCENTAGE", "FIXED_AMOUNT", "FREE_SHIPPING", "BUY_ONE_GET_ONE"]

TITLE_PATTERN = r"^[a-zA-Z0-9\s\-_.&%()]+$"
CODE_PATTERN = r"^[A-Z0-9\-_]+$"


class _CouponDates(CamelIn):
    @model_validator(mode="after")
    def _start_before_end(self):
        start = getattr(self, "start_date", None)
        end = getattr(self, "end_date", None)
        if start and end and not start < end:
            raise ValueError("Start date must be before end date")
        return self


class CouponCreate(_CouponDates):
    title: str = Field(..., min_length=1, max_length=200, pattern=TITLE_PATTERN)
    description: OptionalText = Field(None, max_length=1000)
    code: OptionalText = Field(None, max_length=50, pattern=CODE_PATTERN)

    type: CouponType
    discount_type: DiscountType
    discount_value: float = Field(..., ge=0, le=10000)
    min_order_value: Optional[float] = Field(None, ge=0, le=100000)
    max_discount: Optional[float] = Field(None, ge=0, le=10000)

    is_active: bool = True
    is_verified: bool = False
    is_exclusive: bool = False
    sponsored: bool = False
    sponsor_weight: int = Field(0, ge=0)

    usage_limit: Optional[int] = Field(None, ge=1, le=1_000_000)

    start_date: OptionalDate = None
    end_date: OptionalDate = None

    terms: OptionalText = Field(None, max_length=2000)
    image: OptionalUrl = None
    affiliate_url: OptionalUrl = None

    brand_id: str = Field(..., min_length=1, max_length=50)
    category_id: str = Field(..., min_length=1, max_length=50)


class CouponUpdate(_CouponDates):
    id: Optional[str] = Field(None, max_length=50)
    title: Optional[str] = Field(None, min_length=1, max_length=200, pattern=TITLE_PATTERN)
    description: OptionalText = Field(None, max_length=1000)
    code: OptionalText = Field(None, max_length=50, pattern=CODE_PATTERN)

    type: Optional[CouponType] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = Field(None, ge=0, le=10000)
    min_order_value: Optional[float] = Field(None, ge=0, le=100000)
    max_discount: Optional[float] = Field(None, ge=0, le=10000)

    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None
    is_exclusive: Optional[bool] = None
    sponsored: Optional[bool] = None
    sponsor_weight: Optional[int] = Field(None, ge=0)

    usage_limit: Optional[int] = Field(None, ge=1, le=1_000_000)

    start_date: OptionalDate = None
    end_date: OptionalDate = None

    terms: OptionalText = Field(None, max_length=2000)
    image: OptionalUrl = None
    affiliate_url: OptionalUrl = None

    brand_id: Optional[str] = Field(None, min_length=1, max_length=50)
    category_id: Optional[str] = Field(None, min_length=1, max_length=50)


class CouponFilters(CamelModel):
    """Parsed query string of GET /coupons."""

    page: int = 1
    limit: int = 12
    q: Optional[str] = None
    category_id: Optional[str] = None
    brand_id: Optional[str] = None
    type: Optional[CouponType] = None
    discount_type: Optional[DiscountType] = None
    min_discount: Optional[float] = None
    max_discount: Optional[float] = None
    verified: Optional[bool] = None
    exclusive: Optional[bool] = None
    sort_by: Literal["newest", "popular", "discount", "expiry"] = "newest"
    sort_order: Literal["asc", "desc"] = "desc"


class CouponOut(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    code: Optional[str] = None
    type: str
    discount_type: str
    discount_value: float
    min_order_value: Optional[float] = None
    max_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    used_count: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    terms: Optional[str] = None
    image: Optional[str] = None
    affiliate_url: Optional[str] = None
    is_active: bool
    is_verified: bool
    is_exclusive: bool
    sponsored: bool
    sponsor_weight: int
    brand_id: str
    category_id: str
    created_at: datetime
    updated_at: datetime

    brand: Optional[BrandSummary] = None
    category: Optional[CategorySummary] = None


class CouponListItem(CouponOut):
    is_favorite: bool = False
    usage_count: int = 0
    favorite_count: int = 0


class RedeemedCoupon(CamelModel):
    id: str
    title: str
    code: Optional[str] = None
    brand: str
    affiliate_url: Optional[str] = None


class TrendingBrand(BrandSummary):
    active_coupon_count: int = 0


class TrendingCategory(CategorySummary):
    active_coupon_count: int = 0


class PopularResult(CamelModel):
    coupons: List[CouponListItem]
    trending_brands: List[TrendingBrand]
    trending_categories: List[TrendingCategory]
    timeframe: str
