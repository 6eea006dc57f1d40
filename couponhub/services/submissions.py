from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.errors import Conflict, NotFound, ValidationFailed, field_errors
from couponhub.models.brand import Brand
from couponhub.models.coupon import Coupon
from couponhub.models.submission import UserSubmission
from couponhub.schemas.submissions import BrandDraft, CouponDraft, MoveResult, SubmissionCreate
from couponhub.services.coupons import ensure_refs
from couponhub.services.text import slugify

logger = logging.getLogger(__name__)

PENDING = "PENDING"
APPROVED = "APPROVED"
REJECTED = "REJECTED"

# Only a pending submission can be decided; decisions are final.
ALLOWED_TRANSITIONS = {
    PENDING: {APPROVED, REJECTED},
    APPROVED: set(),
    REJECTED: set(),
}


def check_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValidationFailed(f"Cannot change submission status from {current} to {target}")


async def create_submission(db: AsyncSession, data: SubmissionCreate, *, user_id: Optional[str]) -> UserSubmission:
    sub = UserSubmission(type=data.type, payload=data.payload, status=PENDING, user_id=user_id)
    try:
        db.add(sub)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(sub)
    logger.info("Submission %s received (%s)", sub.id, sub.type)
    return sub


async def list_submissions(
    db: AsyncSession, *, status: Optional[str] = None, type_: Optional[str] = None
) -> list[UserSubmission]:
    q = select(UserSubmission)
    if status:
        q = q.where(UserSubmission.status == status)
    if type_:
        q = q.where(UserSubmission.type == type_)
    res = await db.execute(q.order_by(UserSubmission.created_at.desc(), UserSubmission.id.desc()))
    return list(res.scalars().all())


async def get_submission(db: AsyncSession, submission_id: str) -> UserSubmission:
    sub = await db.get(UserSubmission, submission_id)
    if sub is None:
        raise NotFound("Submission not found")
    return sub


async def set_status(db: AsyncSession, submission_id: str, status: Optional[str]) -> tuple[str, UserSubmission]:
    """PENDING -> APPROVED | REJECTED. Returns (previous status, submission)."""
    if not status:
        raise ValidationFailed("Missing status", errors=[{"field": "status", "message": "Status is required"}])

    sub = await get_submission(db, submission_id)
    previous = sub.status
    check_transition(previous, status)

    sub.status = status
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(sub)
    return previous, sub


def _parse_draft(model, payload: dict):
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        raise ValidationFailed(
            "Submission payload is invalid", errors=field_errors(e, strip_location=False)
        ) from e


async def _move_brand(db: AsyncSession, payload: dict) -> tuple[str, Optional[str]]:
    draft: BrandDraft = _parse_draft(BrandDraft, payload)
    name = draft.name.strip()
    slug = slugify(name)
    if not slug:
        raise ValidationFailed("Brand name must contain letters or numbers")

    existing = (await db.execute(select(Brand).where(Brand.name == name))).scalar_one_or_none()
    if existing is not None:
        return existing.id, "Brand already existed"

    clash = (await db.execute(select(Brand).where(Brand.slug == slug))).scalar_one_or_none()
    if clash is not None:
        raise Conflict(f"Brand slug '{slug}' is already used by '{clash.name}'")

    brand = Brand(
        name=name,
        slug=slug,
        description=draft.description,
        logo=draft.logo,
        website=draft.website,
        is_active=False,
    )
    db.add(brand)
    await db.flush()
    return brand.id, None


async def _move_coupon(db: AsyncSession, payload: dict) -> str:
    draft: CouponDraft = _parse_draft(CouponDraft, payload)
    await ensure_refs(db, brand_id=draft.brand_id, category_id=draft.category_id)

    coupon = Coupon(
        title=draft.title,
        description=draft.description,
        code=draft.code,
        type=draft.type,
        discount_type=draft.discount_type,
        discount_value=draft.discount_value,
        brand_id=draft.brand_id,
        category_id=draft.category_id,
        is_active=False,
        is_verified=False,
        is_exclusive=False,
    )
    db.add(coupon)
    await db.flush()
    return coupon.id


async def move(
    db: AsyncSession, submission_id: str, *, status: Optional[str] = None
) -> tuple[str, UserSubmission, MoveResult]:
    """
    Promote a submission's payload into an inactive Brand or Coupon.

    `status`, when given, is applied in the same transaction as the move; when omitted
    the submission keeps its current status. Returns (previous status, submission, result).
    """
    sub = await get_submission(db, submission_id)
    previous = sub.status

    if previous == REJECTED:
        raise ValidationFailed("Rejected submissions cannot be moved")
    if status is not None and status != previous:
        check_transition(previous, status)

    try:
        if sub.type == "BRAND":
            record_id, note = await _move_brand(db, sub.payload)
            moved_to = "brand"
        else:
            record_id, note = await _move_coupon(db, sub.payload), None
            moved_to = "coupon"

        if status is not None:
            sub.status = status
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(sub)
    logger.info("Submission %s moved to %s %s", sub.id, moved_to, record_id)
    return previous, sub, MoveResult(moved_to=moved_to, id=record_id, status=sub.status, note=note)
