from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.ratelimit import RateLimit
from couponhub.schemas.common import ApiResponse
from couponhub.schemas.submissions import (
    MoveResult,
    SubmissionAction,
    SubmissionCreate,
    SubmissionOut,
    SubmissionStatus,
    SubmissionType,
)
from couponhub.services import audit
from couponhub.services import submissions as submission_service
from couponhub.services.audit import AuditAction

router = APIRouter(prefix="/submissions", tags=["Submissions"])


@router.post("", response_model=ApiResponse[SubmissionOut], status_code=status.HTTP_201_CREATED)
async def create_submission(
    payload: SubmissionCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_csrf=True, rate_limit=RateLimit(30))),
):
    sub = await submission_service.create_submission(db, payload, user_id=ctx.user.id if ctx.user else None)
    return ApiResponse(data=SubmissionOut.model_validate(sub), message="Submission received")


@router.get("", response_model=ApiResponse[List[SubmissionOut]])
async def list_submissions(
    status_: Optional[SubmissionStatus] = Query(default=None, alias="status"),
    type_: Optional[SubmissionType] = Query(default=None, alias="type"),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True)),
):
    subs = await submission_service.list_submissions(db, status=status_, type_=type_)
    return ApiResponse(data=[SubmissionOut.model_validate(s) for s in subs])


@router.patch("", response_model=ApiResponse[dict])
async def update_submission(
    payload: SubmissionAction,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(100))),
):
    """
    action=status: decide a pending submission (APPROVED or REJECTED).
    action=move: promote the payload into an inactive brand or coupon; an optional
    `status` is applied in the same step.
    """
    if payload.action == "status":
        previous, sub = await submission_service.set_status(db, payload.id, payload.status)
        await audit.record(
            db,
            ctx,
            AuditAction.SUBMISSION_STATUS_CHANGED,
            "submission",
            resource_id=sub.id,
            resource_name=sub.type,
            old_values={"status": previous},
            new_values={"status": sub.status},
        )
        return ApiResponse(data=SubmissionOut.model_validate(sub).model_dump(mode="json", by_alias=True))

    previous, sub, result = await submission_service.move(db, payload.id, status=payload.status)
    await audit.record(
        db,
        ctx,
        AuditAction.SUBMISSION_MOVED,
        "submission",
        resource_id=sub.id,
        resource_name=sub.type,
        old_values={"status": previous},
        new_values={"status": sub.status, "movedTo": result.moved_to, "id": result.id},
        metadata={"note": result.note} if result.note else None,
    )
    return ApiResponse(data=MoveResult.model_validate(result).model_dump(mode="json", by_alias=True, exclude_none=True))
