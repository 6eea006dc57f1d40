from __future__ import annotations

from typing import List

from couponhub.schemas.brands import BrandSummary
from couponhub.schemas.categories import CategorySummary
from couponhub.schemas.common import CamelModel
from couponhub.schemas.coupons import CouponOut


class SearchResults(CamelModel):
    coupons: List[CouponOut] = []
    brands: List[BrandSummary] = []
    categories: List[CategorySummary] = []
    total: int = 0
