from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.ratelimit import RateLimit
from couponhub.schemas.common import ApiResponse
from couponhub.schemas.contact import ContactCreate, ContactOut, ContactType
from couponhub.services import contact as contact_service

router = APIRouter(prefix="/contact", tags=["Contact"])


@router.post("", response_model=ApiResponse[ContactOut], status_code=status.HTTP_201_CREATED)
async def submit_contact(
    payload: ContactCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(10))),
):
    row = await contact_service.create_contact(db, payload)
    return ApiResponse(data=ContactOut.model_validate(row), message="Thanks! We'll get back to you soon.")


@router.get("", response_model=ApiResponse[List[ContactOut]])
async def list_contacts(
    type_: Optional[ContactType] = Query(default=None, alias="type"),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True)),
):
    rows = await contact_service.list_contacts(db, type_=type_)
    return ApiResponse(data=[ContactOut.model_validate(r) for r in rows])
