from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.ratelimit import RateLimit
from couponhub.schemas.common import ApiResponse
from couponhub.schemas.search import SearchResults
from couponhub.services import search as search_service

router = APIRouter(prefix="/search", tags=["Search"])


@router.get("", response_model=ApiResponse[SearchResults])
async def search(
    q: str = Query(..., min_length=1, max_length=100, pattern=r"^[a-zA-Z0-9\s\-_.]+$"),
    type: Literal["all", "coupons", "brands", "categories"] = Query(default="all"),
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(100))),
):
    return ApiResponse(data=await search_service.search(db, q, type_=type, limit=limit))
